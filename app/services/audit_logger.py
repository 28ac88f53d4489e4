# FILE: app/services/audit_logger.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.core.context import CallerContext
from app.models.audit import AuditLog
from app.utils.timezone import now_local

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    ctx: Optional[CallerContext],
    action: str,  # PAYMENT / REFUND / DISPENSE / RETURN / STOCK_ADJUST / ...
    table_name: str,
    record_id: Any,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    remark: Optional[str] = None,
) -> AuditLog:
    """
    Add one audit event to the current transaction.

    Nothing is committed here: the row is persisted (or rolled back)
    together with the business change it records.
    """
    log = AuditLog(
        user_id=ctx.user_id if ctx else None,
        username=ctx.username if ctx else None,
        action=action,
        table_name=table_name,
        record_id=str(record_id),
        old_values=jsonable_encoder(old_values) if old_values else None,
        new_values=jsonable_encoder(new_values) if new_values else None,
        remark=remark,
        created_at=now_local(),
    )
    db.add(log)
    logger.debug("audit %s %s#%s by %s", action, table_name, record_id,
                 log.username)
    return log
