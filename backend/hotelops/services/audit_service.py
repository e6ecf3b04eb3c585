# Overview: Service-layer operations for the append-only audit event log.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import AuditEvent
"""
Audit log invariants

- Append-only; rows are never updated or deleted (see hotelops.immutability).
- No domain logic here; callers decide what is worth recording.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back change leaves no event behind.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_audit_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    department_id: int | None = None,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: dict | str | None = None,
) -> AuditEvent:
    if isinstance(payload, dict):
        payload = json.dumps(payload, sort_keys=True, default=str)

    ev = AuditEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        department_id=department_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_audit_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_category: str | None = None,
    since: Optional[datetime] = None,
    limit: int = 100,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if event_category:
        query = query.filter(AuditEvent.event_category == event_category)
    if since is not None:
        query = query.filter(AuditEvent.occurred_at >= since)

    limit = min(max(limit, 1), 500)
    return query.order_by(AuditEvent.id.desc()).limit(limit).all()
