from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.charting.config import settings

logger = logging.getLogger("audit")


@dataclass
class AuditLogRecord:
    """Structured representation of an audit log line.

    Intentionally keeps payload minimal and avoids PHI: focus on IDs, statuses,
    and counts rather than note content or transcript text.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Log a structured audit event and return the logged payload.

        - `action`: high-level verb, e.g., "append_note", "sign_note".
        - `resource_type`: coarse type, e.g., "visit", "visit_note".
        - `resource_id`: stable identifier (UUID string) when available.
        - `subject`: identifier of the acting user. If omitted, it is taken
          from the request's actor context.
        - `extra`: optional small dict of non-PHI metadata (counts, statuses).

        This complements, and does not replace, the per-visit audit trail
        held by the note store.
        """

        if not settings.audit_log_enabled:
            return None

        if subject is None:
            from src.charting.actors import get_current_actor

            subject = get_current_actor()

        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            extra=extra,
        )

        payload = asdict(record)
        try:
            logger.info(json.dumps(payload))
        except TypeError:
            # Fallback: log a simpler representation if something in extra is
            # not JSON serializable.
            payload["extra"] = None
            logger.info(json.dumps(payload))
        return payload


audit_service = AuditService()
