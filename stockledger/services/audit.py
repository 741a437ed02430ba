import json

from sqlalchemy.orm import Session

from stockledger.models.audit import AuditLog


def record_audit(
    db: Session,
    event_type: str,
    *,
    actor_name: str | None = None,
    actor_user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    audit = AuditLog(
        event_type=event_type,
        actor_name=actor_name,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        details=json.dumps(details or {}, default=str),
    )
    db.add(audit)
    return audit
