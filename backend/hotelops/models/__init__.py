from .departments import Department, DepartmentSection
from .inventory import InventoryItem, StockEntry, MovementRecord, Reservation
from .orders import Order, OrderDepartment, OrderLine, FulfillmentRecord
from .transfers import Transfer, TransferItem
from .extras import Extra, ExtraAllocation
from .audit import AuditEvent, DocumentSequence

__all__ = [
    'Department', 'DepartmentSection',
    'InventoryItem', 'StockEntry', 'MovementRecord', 'Reservation',
    'Order', 'OrderDepartment', 'OrderLine', 'FulfillmentRecord',
    'Transfer', 'TransferItem',
    'Extra', 'ExtraAllocation',
    'AuditEvent', 'DocumentSequence',
]
