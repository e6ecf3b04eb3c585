# Overview: Request, capability and error-mapping decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .errors import (
    ConcurrencyConflictError,
    ImmutabilityViolationError,
    NotFoundError,
    TransientConflictError,
    ValidationError,
)
from .extensions import db


def _header_roles() -> set[str]:
    raw = request.headers.get("X-Roles", "")
    return {role.strip().lower() for role in raw.split(",") if role.strip()}


def default_authorizer(req, capability: str) -> bool:
    """Grant when any role in the X-Roles header is mapped to the capability."""
    allowed = current_app.config.get("CAPABILITY_ROLES", {}).get(capability, set())
    return bool(_header_roles() & set(allowed))


def _current_user_id():
    raw = request.headers.get("X-User-Id")
    if raw and raw.strip().isdigit():
        return int(raw.strip())
    return None


def require_capability(capability: str):
    """
    Require the caller to hold a capability.

    Identity and role management live outside this service: the configured
    AUTHORIZER callable (request, capability) -> bool decides, falling back
    to the X-Roles header. Sets g.user_id from X-User-Id for auditing.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            authorizer = current_app.config.get("AUTHORIZER") or default_authorizer
            if not authorizer(request, capability):
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability,
                }), 403

            g.user_id = _current_user_id()
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def handle_service_errors(f):
    """
    Map typed service errors to JSON responses and roll back the session.

    ValidationError 400 (409 for ConflictError), NotFoundError 404,
    ConcurrencyConflictError 409, transient conflicts that outlasted their
    retries 503, anything else 500 with the traceback logged.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            db.session.rollback()
            body = {"error": str(e)}
            if e.details:
                body["details"] = e.details
            return jsonify(body), e.status_code
        except NotFoundError as e:
            db.session.rollback()
            return jsonify({"error": str(e)}), 404
        except (ConcurrencyConflictError, ImmutabilityViolationError) as e:
            db.session.rollback()
            return jsonify({"error": str(e)}), 409
        except (TransientConflictError, OperationalError, StaleDataError) as e:
            db.session.rollback()
            current_app.logger.warning("Request %s %s gave up on conflict: %s", request.method, request.path, e)
            return jsonify({"error": "Service busy, please retry"}), 503
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unhandled error in %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
