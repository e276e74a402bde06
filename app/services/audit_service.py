import uuid, json
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog

# Actor id recorded for changes driven by gateway webhooks
SYSTEM_ACTOR = "razorpay"


def log_audit(db: Session, actor_user_id: str, action: str, entity_type: str, entity_id: str, details: dict | None = None):
    """Stage an audit row; it is committed with the caller's transaction."""
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str),
    ))


def audit_to_dict(a: AuditLog) -> dict:
    return {
        "id": a.id,
        "actorUserId": a.actor_user_id,
        "action": a.action,
        "entityType": a.entity_type,
        "entityId": a.entity_id,
        "details": json.loads(a.details_json or "{}"),
        "createdAt": a.created_at.isoformat() if a.created_at else None,
    }


def list_audit(db: Session, entity_type: str | None = None, entity_id: str | None = None,
               action: str | None = None, limit: int = 50) -> list[dict]:
    q = db.query(AuditLog)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    if action:
        q = q.filter(AuditLog.action == action)
    rows = q.order_by(AuditLog.created_at.desc()).limit(min(max(limit, 1), 200)).all()
    return [audit_to_dict(a) for a in rows]
