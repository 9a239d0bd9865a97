import logging
from typing import Any, Optional

from sqlmodel import Session

from storefront.model.audit_log import AuditLog

logger = logging.getLogger(__name__)


def try_write_audit_log(
    session: Session,
    *,
    event_type: str,
    tenant_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
    data: Optional[dict[str, Any]] = None,
) -> None:
    """
    Best-effort audit: a failure here must not break the request.
    """
    try:
        session.add(
            AuditLog(
                tenant_id=tenant_id,
                actor_user_id=actor_user_id,
                event_type=event_type,
                data=data,
            )
        )
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(f"Audit log write failed ({event_type}): {e}")
