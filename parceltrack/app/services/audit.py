"""
Audit logging service for tracking delivery and courier events.

Events are written to the "parceltrack.audit" logger and kept in a bounded
in-memory trail that admins can query.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

from parceltrack.app.core.config import settings

logger = logging.getLogger("parceltrack.audit")


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Delivery lifecycle
    DELIVERY_CREATED = "DELIVERY_CREATED"
    DELIVERY_ASSIGNED = "DELIVERY_ASSIGNED"
    DELIVERY_QUEUED = "DELIVERY_QUEUED"
    DELIVERY_OUT_FOR_DELIVERY = "DELIVERY_OUT_FOR_DELIVERY"
    DELIVERY_DELIVERED = "DELIVERY_DELIVERED"
    DELIVERY_NOT_DELIVERED = "DELIVERY_NOT_DELIVERED"
    DELIVERY_COMPLETED = "DELIVERY_COMPLETED"
    DELIVERY_ETA_UPDATED = "DELIVERY_ETA_UPDATED"
    DELIVERY_DELETED = "DELIVERY_DELETED"

    # Courier management
    COURIER_ADDED = "COURIER_ADDED"
    COURIER_DELETED = "COURIER_DELETED"


class AuditEvent:
    """A single recorded audit event."""

    def __init__(self, action: str, actor_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        self.action = action
        self.actor_id = actor_id
        self.metadata = metadata or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "actor_id": self.actor_id,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


class AuditTrail:
    """Bounded, most-recent-last store of audit events."""

    def __init__(self, max_size: int = settings.audit_trail_size):
        self._events = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def log_event(
        self,
        action: str,
        actor_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """
        Record an event.

        Args:
            action: Action being performed (use AuditAction constants)
            actor_id: ID of the member, courier or admin performing the action
            metadata: Additional context

        Returns:
            Created AuditEvent
        """
        event = AuditEvent(action, actor_id, metadata)
        with self._lock:
            self._events.append(event)
        logger.info(action, extra={"actor_id": actor_id, "audit": event.metadata})
        return event

    def get_audit_trail(self, action: Optional[str] = None, limit: int = 100) -> List[AuditEvent]:
        """
        Retrieve audit trail with optional filtering.

        Args:
            action: Filter by action type
            limit: Maximum number of records to return

        Returns:
            List of AuditEvent instances, most recent first
        """
        with self._lock:
            events = list(self._events)
        events.reverse()
        if action:
            events = [e for e in events if e.action == action]
        return events[:limit]

    def __len__(self) -> int:
        return len(self._events)
