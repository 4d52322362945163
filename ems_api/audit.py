"""
Audit logging. Security-relevant events only; no tokens, passwords, or request bodies.
GET /audit lists recent events for system administrators.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ems_api.database import get_db
from ems_api.deps import require_roles
from ems_api.models import AuditLog
from ems_client.models import UserRole

EVENT_LOGIN_OK = "login_ok"
EVENT_LOGIN_FAIL = "login_fail"
EVENT_LOGIN_RATE_LIMITED = "login_rate_limited"
EVENT_TOKEN_REFRESHED = "token_refreshed"
EVENT_REFRESH_FAIL = "refresh_fail"
EVENT_LOGOUT = "logout"
EVENT_USER_REGISTERED = "user_registered"
EVENT_USER_INVITED = "user_invited"
EVENT_ACCOUNT_ACTIVATED = "account_activated"
EVENT_PASSWORD_RESET_REQUESTED = "password_reset_requested"
EVENT_PASSWORD_RESET = "password_reset"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"


def get_client_ip(request: Request | None) -> str | None:
    """Client IP if available (request.client.host). Forwarding headers are ignored."""
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


def log_audit(
    db: Session,
    event_type: str,
    *,
    user_id: str | None = None,
    username: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
) -> None:
    """Append one audit record. Never log tokens or passwords."""
    db.add(
        AuditLog(
            event_type=event_type,
            user_id=user_id,
            username=username,
            ip=ip,
            outcome=outcome,
        )
    )
    db.commit()


def query_audit_logs(
    db: Session,
    *,
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    username: str | None = None,
) -> list[dict]:
    """Audit events matching the optional filters, most recent first."""
    q = db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if event_type:
        q = q.filter(AuditLog.event_type == event_type)
    if outcome:
        q = q.filter(AuditLog.outcome == outcome)
    if username:
        q = q.filter(AuditLog.username == username)
    rows = q.limit(min(max(1, limit), 500)).all()
    return [
        {
            "createdAt": r.created_at.isoformat() if r.created_at else None,
            "eventType": r.event_type,
            "userId": r.user_id,
            "username": r.username,
            "ip": r.ip,
            "outcome": r.outcome,
        }
        for r in rows
    ]


router = APIRouter(tags=["audit"])


@router.get("/audit", dependencies=[require_roles(UserRole.SYSTEM_ADMIN)])
def list_audit_logs(
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    username: str | None = None,
    db: Session = Depends(get_db),
):
    return query_audit_logs(db, limit=limit, event_type=event_type, outcome=outcome, username=username)
