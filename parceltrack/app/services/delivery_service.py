"""
Delivery Service.

Record store and operations facade for couriers and deliveries. Owns the
delivery-id allocator and the assignment scheduler, enforces who may act on
a delivery, and rewrites the record files after every mutating operation.

Every public operation either returns its result or raises an AppException
subclass; a rejected operation leaves state unchanged. All operations are
serialized behind one re-entrant lock, which keeps id allocation, the
first-fit scan and backlog draining atomic.
"""

import logging
import threading
from typing import Dict, List, Optional, Union

from parceltrack.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidInputError,
    InvalidStateError,
    PersistenceError,
    ResourceNotFoundError,
)
from parceltrack.app.domain.dispatch.scheduler import AssignmentScheduler
from parceltrack.app.domain.persistence.codec import DELIMITER, PersistenceCodec
from parceltrack.app.models.courier import Courier, is_valid_rating
from parceltrack.app.models.delivery import Delivery
from parceltrack.app.models.delivery_enums import (
    DELETABLE_STATUSES,
    Category,
    DeliveryStatus,
    Priority,
)
from parceltrack.app.models.member import Member
from parceltrack.app.schemas.analytics import DashboardStats
from parceltrack.app.services.analytics import AnalyticsService
from parceltrack.app.services.audit import AuditAction, AuditTrail

logger = logging.getLogger("parceltrack.service")


def _require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} cannot be empty", field=field)
    return text


def parse_delivery_id(value: Union[int, str]) -> int:
    """Accept an int or a numeric string; anything else is invalid input."""
    if isinstance(value, bool):
        raise InvalidInputError("Invalid delivery ID", field="delivery_id")
    if isinstance(value, int):
        delivery_id = value
    else:
        try:
            delivery_id = int(str(value).strip())
        except ValueError:
            raise InvalidInputError("Invalid delivery ID", field="delivery_id")
    if delivery_id <= 0:
        raise InvalidInputError("Invalid delivery ID", field="delivery_id")
    return delivery_id


class DeliveryService:
    """
    In-memory record store for couriers and deliveries.

    Args:
        codec: Record file codec; None disables persistence
        audit: Audit trail; a private one is created if omitted
    """

    def __init__(self, codec: Optional[PersistenceCodec] = None, audit: Optional[AuditTrail] = None):
        self.codec = codec
        self.audit = audit or AuditTrail()
        self._couriers: Dict[str, Courier] = {}
        self._deliveries: Dict[int, Delivery] = {}
        self._next_id = 1
        self.scheduler = AssignmentScheduler(self._couriers)
        self._lock = threading.RLock()
        self.last_persistence_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self):
        """
        Rehydrate couriers and deliveries from the record files.

        Must run before any scheduler activity. After decoding:
        - couriers holding an ASSIGNED/OUT_FOR_DELIVERY delivery are busy
        - courier rating histories are rebuilt from COMPLETED deliveries
        - REQUESTED deliveries are queued in id order and the backlog drained
        - the next delivery id is max(existing ids) + 1
        """
        if self.codec is None:
            return
        with self._lock:
            try:
                couriers = self.codec.load_couriers()
            except PersistenceError as e:
                logger.error("Courier records unreadable, starting empty", extra={"error": e.message})
                self.last_persistence_error = e.message
                couriers = {}
            try:
                deliveries = self.codec.load_deliveries(couriers)
            except PersistenceError as e:
                logger.error("Delivery records unreadable, starting empty", extra={"error": e.message})
                self.last_persistence_error = e.message
                deliveries = []

            self._couriers.clear()
            self._couriers.update(couriers)
            self._deliveries.clear()
            self.scheduler.clear()

            for delivery in sorted(deliveries, key=lambda d: d.delivery_id):
                self._deliveries[delivery.delivery_id] = delivery
                courier = delivery.assigned_courier
                if courier is not None and delivery.is_active:
                    courier.available = False
                if (
                    courier is not None
                    and delivery.status == DeliveryStatus.COMPLETED
                    and delivery.rating is not None
                ):
                    courier.add_rating(delivery.rating)
                if delivery.status == DeliveryStatus.REQUESTED:
                    self.scheduler.enqueue(delivery)

            self._next_id = max(self._deliveries, default=0) + 1
            logger.info(
                "Records loaded",
                extra={
                    "couriers": len(self._couriers),
                    "deliveries": len(self._deliveries),
                    "backlog": len(self.scheduler),
                },
            )
            if self._drain():
                self.save()

    def save(self) -> bool:
        """
        Rewrite both record files.

        Failures are logged and remembered in `last_persistence_error`;
        in-memory state stays authoritative.

        Returns:
            True on success (or when persistence is disabled)
        """
        if self.codec is None:
            return True
        with self._lock:
            try:
                self.codec.save_couriers(self._couriers.values())
                self.codec.save_deliveries(self._deliveries.values())
            except PersistenceError as e:
                logger.error("Failed to save records", extra={"error": e.message, **e.details})
                self.last_persistence_error = e.message
                return False
            self.last_persistence_error = None
            return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_delivery(self, delivery_id) -> Delivery:
        delivery_id = parse_delivery_id(delivery_id)
        delivery = self._deliveries.get(delivery_id)
        if delivery is None:
            raise ResourceNotFoundError("Delivery", delivery_id)
        return delivery

    def _get_courier(self, courier_id: str) -> Courier:
        courier = self._couriers.get(courier_id)
        if courier is None:
            raise ResourceNotFoundError("Courier", courier_id)
        return courier

    def _require_assigned_courier(self, delivery: Delivery, courier_id: str):
        self._get_courier(courier_id)
        if not delivery.is_assigned_to(courier_id):
            raise InsufficientPermissionsError(
                "You cannot modify this delivery (not assigned to you)",
                details={"delivery_id": delivery.delivery_id, "courier_id": courier_id},
            )

    @staticmethod
    def _is_sender_or_receiver(delivery: Delivery, member: Member) -> bool:
        if delivery.sender.id == member.id:
            return True
        name = (member.name or "").strip()
        return bool(name) and delivery.receiver_name.strip().casefold() == name.casefold()

    def _require_sender_or_receiver(self, delivery: Delivery, member: Member, action: str):
        if not self._is_sender_or_receiver(delivery, member):
            raise InsufficientPermissionsError(
                f"You are not authorized to {action} this delivery",
                details={"delivery_id": delivery.delivery_id, "member_id": member.id},
            )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _drain(self) -> List[Delivery]:
        assigned = self.scheduler.drain_backlog()
        for delivery in assigned:
            self.audit.log_event(
                AuditAction.DELIVERY_ASSIGNED,
                metadata={
                    "delivery_id": delivery.delivery_id,
                    "courier_id": delivery.assigned_courier_id,
                    "from_backlog": True,
                },
            )
        return assigned

    # ------------------------------------------------------------------
    # Member operations
    # ------------------------------------------------------------------

    def create_delivery(
        self,
        member: Member,
        receiver_name: str,
        receiver_phone: str,
        receiver_address: str,
        item: str,
        priority: Union[Priority, str, None] = None,
        category: Union[Category, str, None] = None,
    ) -> Delivery:
        """
        Create a REQUESTED delivery and try to assign it immediately.

        If no courier is free the delivery joins the backlog.
        """
        if member is None or not (member.id or "").strip():
            raise InvalidInputError("Sender ID cannot be empty", field="sender_id")
        receiver_name = _require_text(receiver_name, "receiver_name")
        receiver_phone = _require_text(receiver_phone, "receiver_phone")
        receiver_address = _require_text(receiver_address, "receiver_address")
        item = _require_text(item, "item")

        with self._lock:
            delivery = Delivery(
                delivery_id=self._next_id,
                sender=member,
                receiver_name=receiver_name,
                receiver_phone=receiver_phone,
                receiver_address=receiver_address,
                item=item,
                priority=Priority.parse(priority),
                category=Category.parse(category),
            )
            self._next_id += 1
            self._deliveries[delivery.delivery_id] = delivery
            self.audit.log_event(
                AuditAction.DELIVERY_CREATED,
                actor_id=member.id,
                metadata={
                    "delivery_id": delivery.delivery_id,
                    "priority": delivery.priority.value,
                    "estimated_minutes": delivery.estimated_minutes,
                },
            )

            courier = self.scheduler.assign_if_available(delivery)
            if courier is not None:
                self.audit.log_event(
                    AuditAction.DELIVERY_ASSIGNED,
                    metadata={"delivery_id": delivery.delivery_id, "courier_id": courier.id},
                )
            else:
                self.audit.log_event(
                    AuditAction.DELIVERY_QUEUED,
                    metadata={"delivery_id": delivery.delivery_id, "backlog_size": len(self.scheduler)},
                )
            self.save()
            return delivery

    def confirm_delivery(
        self,
        delivery_id,
        member: Member,
        rating: Optional[int] = None,
        review: Optional[str] = None,
    ) -> Delivery:
        """
        Confirm receipt (DELIVERED | NOT_DELIVERED → COMPLETED).

        Only the sender or the named receiver may confirm. A rating, if given,
        must be 1..5 and is appended to the courier's history.
        """
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_sender_or_receiver(delivery, member, "confirm")
            if rating is not None and not is_valid_rating(rating):
                raise InvalidInputError("Rating must be between 1 and 5", field="rating")
            review = (review or "").strip() or None

            delivery.mark_completed(rating, review)
            self.audit.log_event(
                AuditAction.DELIVERY_COMPLETED,
                actor_id=member.id,
                metadata={
                    "delivery_id": delivery.delivery_id,
                    "courier_id": delivery.assigned_courier_id,
                    "rating": delivery.rating,
                },
            )
            self._drain()
            self.save()
            return delivery

    def get_receipt(self, delivery_id, member: Member) -> Delivery:
        """Return the delivery for receipt printing, sender or receiver only."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_sender_or_receiver(delivery, member, "view the receipt of")
            return delivery

    def list_member_deliveries(self, member_id: str) -> List[Delivery]:
        """Deliveries sent by a member, oldest first."""
        with self._lock:
            return [d for d in self._deliveries.values() if d.sender.id == member_id]

    # ------------------------------------------------------------------
    # Courier operations
    # ------------------------------------------------------------------

    def mark_out_for_delivery(self, delivery_id, courier_id: str) -> Delivery:
        """ASSIGNED → OUT_FOR_DELIVERY, assigned courier only."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_assigned_courier(delivery, courier_id)
            delivery.mark_out_for_delivery()
            self.audit.log_event(
                AuditAction.DELIVERY_OUT_FOR_DELIVERY,
                actor_id=courier_id,
                metadata={"delivery_id": delivery.delivery_id},
            )
            self.save()
            return delivery

    def mark_delivered(self, delivery_id, courier_id: str) -> Delivery:
        """OUT_FOR_DELIVERY → DELIVERED; frees the courier and drains the backlog."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_assigned_courier(delivery, courier_id)
            delivery.mark_delivered()
            self.audit.log_event(
                AuditAction.DELIVERY_DELIVERED,
                actor_id=courier_id,
                metadata={"delivery_id": delivery.delivery_id},
            )
            self._drain()
            self.save()
            return delivery

    def mark_not_delivered(self, delivery_id, courier_id: str, note: Optional[str] = None) -> Delivery:
        """OUT_FOR_DELIVERY → NOT_DELIVERED; frees the courier and drains the backlog."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_assigned_courier(delivery, courier_id)
            delivery.mark_not_delivered()
            metadata = {"delivery_id": delivery.delivery_id}
            if note and note.strip():
                metadata["note"] = note.strip()
            self.audit.log_event(AuditAction.DELIVERY_NOT_DELIVERED, actor_id=courier_id, metadata=metadata)
            self._drain()
            self.save()
            return delivery

    def update_eta(self, delivery_id, courier_id: str, minutes: int) -> Delivery:
        """Override the ETA of an active delivery, assigned courier only."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            self._require_assigned_courier(delivery, courier_id)
            previous = delivery.estimated_minutes
            delivery.update_eta(minutes)
            self.audit.log_event(
                AuditAction.DELIVERY_ETA_UPDATED,
                actor_id=courier_id,
                metadata={
                    "delivery_id": delivery.delivery_id,
                    "previous_minutes": previous,
                    "estimated_minutes": minutes,
                },
            )
            self.save()
            return delivery

    def list_courier_deliveries(self, courier_id: str) -> List[Delivery]:
        """Every delivery ever assigned to a courier, oldest first."""
        with self._lock:
            self._get_courier(courier_id)
            return [d for d in self._deliveries.values() if d.is_assigned_to(courier_id)]

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def add_courier(self, name: str, courier_id: str, pin: str = "") -> Courier:
        """Register a courier; queued deliveries are assigned to it right away."""
        name = _require_text(name, "name")
        courier_id = _require_text(courier_id, "courier_id")
        if DELIMITER in courier_id:
            raise InvalidInputError(f"Courier ID cannot contain '{DELIMITER}'", field="courier_id")

        with self._lock:
            if courier_id in self._couriers:
                raise InvalidInputError(f"Courier ID {courier_id} already exists", field="courier_id")
            courier = Courier(name, courier_id, (pin or "").strip())
            self._couriers[courier_id] = courier
            relinked = self._attach_history(courier)
            self.audit.log_event(
                AuditAction.COURIER_ADDED,
                metadata={"courier_id": courier_id, "name": name, "relinked_deliveries": relinked},
            )
            self._drain()
            self.save()
            return courier

    def _attach_history(self, courier: Courier) -> int:
        """
        Re-attach deliveries that still reference a re-registered courier id.

        Ratings of COMPLETED deliveries are replayed into the new record, the
        same way load() rebuilds them, so memory and the record files agree.
        """
        relinked = 0
        for delivery in self._deliveries.values():
            if not delivery.is_assigned_to(courier.id):
                continue
            delivery.relink_courier(courier)
            relinked += 1
            if delivery.status == DeliveryStatus.COMPLETED and delivery.rating is not None:
                courier.add_rating(delivery.rating)
        return relinked

    def has_active_deliveries(self, courier_id: str) -> bool:
        with self._lock:
            return any(
                d.is_active and d.is_assigned_to(courier_id)
                for d in self._deliveries.values()
            )

    def delete_courier(self, courier_id: str) -> Courier:
        """Remove a courier that holds no ASSIGNED/OUT_FOR_DELIVERY delivery."""
        with self._lock:
            courier = self._get_courier(courier_id)
            if self.has_active_deliveries(courier_id):
                raise InvalidStateError(
                    "Cannot delete courier with active deliveries",
                    details={"courier_id": courier_id},
                )
            del self._couriers[courier_id]
            self.audit.log_event(
                AuditAction.COURIER_DELETED,
                metadata={"courier_id": courier_id, "name": courier.name},
            )
            self.save()
            return courier

    def delete_delivery(self, delivery_id) -> Delivery:
        """Remove a REQUESTED or COMPLETED delivery (and its backlog entry)."""
        with self._lock:
            delivery = self._get_delivery(delivery_id)
            if delivery.status not in DELETABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot delete delivery with status: {delivery.status.value}. "
                    "Only REQUESTED or COMPLETED deliveries can be deleted.",
                    details={"delivery_id": delivery.delivery_id, "current_status": delivery.status.value},
                )
            del self._deliveries[delivery.delivery_id]
            self.scheduler.remove(delivery)
            self.audit.log_event(
                AuditAction.DELIVERY_DELETED,
                metadata={"delivery_id": delivery.delivery_id, "status": delivery.status.value},
            )
            self.save()
            return delivery

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def get_delivery(self, delivery_id) -> Delivery:
        with self._lock:
            return self._get_delivery(delivery_id)

    def list_deliveries(self, status: Optional[DeliveryStatus] = None) -> List[Delivery]:
        with self._lock:
            return [d for d in self._deliveries.values() if status is None or d.status == status]

    def get_courier(self, courier_id: str) -> Courier:
        with self._lock:
            return self._get_courier(courier_id)

    def list_couriers(self) -> List[Courier]:
        with self._lock:
            return list(self._couriers.values())

    def backlog(self) -> List[int]:
        with self._lock:
            return self.scheduler.backlog

    def dashboard(self) -> DashboardStats:
        with self._lock:
            return AnalyticsService.get_dashboard(
                self._deliveries.values(),
                self._couriers.values(),
                backlog_size=len(self.scheduler),
            )
