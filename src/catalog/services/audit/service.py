from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured representation of a catalog audit event.

    Keeps the payload minimal: guideline ids, counts, flags and the verb,
    never guideline text or uploaded bytes.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str, sort_keys=True)


class AuditService:
    """Writes one JSON line per catalog operation to the ``audit`` logger.

    The most recent events are also kept in memory (bounded) so operators
    and tests can inspect what was recorded without scraping logs.
    """

    def __init__(self, history: int = 500) -> None:
        self._recent: Deque[AuditEvent] = deque(maxlen=history)
        self._lock = Lock()

    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Record a structured audit event.

        - `action`: operation verb, e.g. "create_guideline", "search_guidelines".
        - `resource_type`: coarse type, e.g. "guideline".
        - `resource_id`: guideline UUID string when the operation targets one.
        - `subject`: caller identifier ("user:<id>"). If omitted, it is taken
          from the request's security context; anonymous callers stay None.
        - `extra`: small dict of counts and flags.
        """

        if subject is None:
            from src.catalog.security import get_current_subject

            subject = get_current_subject()

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            extra=extra,
        )
        logger.info(event.to_json())
        with self._lock:
            self._recent.append(event)
        return event

    def recent(self, action: Optional[str] = None, limit: int = 50) -> List[AuditEvent]:
        """Newest-first view of recorded events, optionally for one action."""

        with self._lock:
            events = list(self._recent)
        if action is not None:
            events = [e for e in events if e.action == action]
        return list(reversed(events))[:limit]


audit_service = AuditService()
