"""
Delivery model.

A delivery is a parcel request from a member to a named receiver. It owns its
status state machine and one timestamp per status reached; the courier it is
assigned to is referenced weakly, by id, and is never owned by the delivery.
"""

import weakref
from datetime import datetime
from typing import Dict, Optional

from parceltrack.app.core.exceptions import InvalidInputError, InvalidStateError
from parceltrack.app.models.courier import Courier, is_valid_rating
from parceltrack.app.models.delivery_enums import (
    ACTIVE_STATUSES,
    Category,
    DeliveryStatus,
    Priority,
)
from parceltrack.app.models.member import Member

# Legal predecessors for every transition
TRANSITIONS = {
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.REQUESTED}),
    DeliveryStatus.OUT_FOR_DELIVERY: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.DELIVERED: frozenset({DeliveryStatus.OUT_FOR_DELIVERY}),
    DeliveryStatus.NOT_DELIVERED: frozenset({DeliveryStatus.OUT_FOR_DELIVERY}),
    DeliveryStatus.COMPLETED: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.NOT_DELIVERED}),
}

# Timestamp attribute written on first entry to each status
TIMESTAMP_FIELDS = {
    DeliveryStatus.REQUESTED: "requested_at",
    DeliveryStatus.ASSIGNED: "assigned_at",
    DeliveryStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.NOT_DELIVERED: "not_delivered_at",
    DeliveryStatus.COMPLETED: "completed_at",
}


class Delivery:
    """
    Delivery model.

    Transitions raise InvalidStateError when called from an illegal
    predecessor, so each timestamp is written exactly once. Authorization
    (who may call which transition) is the caller's job.
    """

    def __init__(
        self,
        delivery_id: int,
        sender: Member,
        receiver_name: str,
        receiver_phone: str,
        receiver_address: str,
        item: str,
        priority: Optional[Priority] = None,
        category: Optional[Category] = None,
        requested_at: Optional[datetime] = None,
    ):
        self.delivery_id = delivery_id
        self.sender = sender
        self.receiver_name = receiver_name
        self.receiver_phone = receiver_phone
        self.receiver_address = receiver_address
        self.item = item
        self.priority = priority or Priority.UNKNOWN
        self.category = category or Category.OTHER

        self.status = DeliveryStatus.REQUESTED
        self.assigned_courier_id: Optional[str] = None
        self._courier_ref = None
        self.rating: Optional[int] = None
        self.review: Optional[str] = None
        self.estimated_minutes: int = self.priority.estimated_minutes

        self.requested_at: datetime = requested_at or datetime.now()
        self.assigned_at: Optional[datetime] = None
        self.out_for_delivery_at: Optional[datetime] = None
        self.delivered_at: Optional[datetime] = None
        self.not_delivered_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Courier reference
    # ------------------------------------------------------------------

    @property
    def assigned_courier(self) -> Optional[Courier]:
        """The assigned courier, or None if unassigned or no longer alive."""
        if self._courier_ref is None:
            return None
        return self._courier_ref()

    def _link_courier(self, courier: Optional[Courier], courier_id: Optional[str] = None):
        self._courier_ref = weakref.ref(courier) if courier is not None else None
        self.assigned_courier_id = courier.id if courier is not None else courier_id

    def relink_courier(self, courier: Courier):
        """Point the courier relation at the record now registered under the assigned id."""
        if not self.is_assigned_to(courier.id):
            raise InvalidInputError(
                f"Delivery {self.delivery_id} is not assigned to courier {courier.id}",
                field="courier_id",
            )
        self._link_courier(courier)

    def is_assigned_to(self, courier_id: str) -> bool:
        return self.assigned_courier_id is not None and self.assigned_courier_id == courier_id

    @property
    def is_active(self) -> bool:
        """True while a courier is holding this delivery."""
        return self.status in ACTIVE_STATUSES

    @property
    def timestamps(self) -> Dict[DeliveryStatus, Optional[datetime]]:
        return {status: getattr(self, field) for status, field in TIMESTAMP_FIELDS.items()}

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def can_transition(self, target: DeliveryStatus) -> bool:
        return self.status in TRANSITIONS.get(target, frozenset())

    def _transition(self, target: DeliveryStatus):
        if not self.can_transition(target):
            raise InvalidStateError(
                f"Cannot move delivery {self.delivery_id} from {self.status.value} to {target.value}",
                details={
                    "delivery_id": self.delivery_id,
                    "current_status": self.status.value,
                    "requested_status": target.value,
                },
            )
        self.status = target
        setattr(self, TIMESTAMP_FIELDS[target], datetime.now())

    def assign(self, courier: Courier):
        """REQUESTED → ASSIGNED. Marks the courier unavailable."""
        if courier is None:
            raise InvalidInputError("A courier is required for assignment", field="courier")
        self._transition(DeliveryStatus.ASSIGNED)
        self._link_courier(courier)
        courier.available = False

    def mark_out_for_delivery(self):
        """ASSIGNED → OUT_FOR_DELIVERY."""
        self._transition(DeliveryStatus.OUT_FOR_DELIVERY)

    def mark_delivered(self):
        """OUT_FOR_DELIVERY → DELIVERED. Releases the courier."""
        self._transition(DeliveryStatus.DELIVERED)
        self._release_courier()

    def mark_not_delivered(self):
        """OUT_FOR_DELIVERY → NOT_DELIVERED. Releases the courier."""
        self._transition(DeliveryStatus.NOT_DELIVERED)
        self._release_courier()

    def mark_completed(self, rating: Optional[int] = None, review: Optional[str] = None) -> bool:
        """
        DELIVERED | NOT_DELIVERED → COMPLETED.

        A rating within 1..5 is stored and appended to the courier's history;
        anything else is discarded. An empty review is discarded.

        Returns:
            True if the rating was recorded
        """
        self._transition(DeliveryStatus.COMPLETED)
        self.review = review or None
        if not is_valid_rating(rating):
            self.rating = None
            return False
        self.rating = rating
        courier = self.assigned_courier
        if courier is not None:
            courier.add_rating(rating)
        return True

    def update_eta(self, minutes: int):
        """Override the estimated delivery time while a courier holds the delivery."""
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidInputError("ETA must be a positive number of minutes", field="estimated_minutes")
        if not self.is_active:
            raise InvalidStateError(
                f"Cannot update ETA of delivery {self.delivery_id} in status {self.status.value}",
                details={"delivery_id": self.delivery_id, "current_status": self.status.value},
            )
        self.estimated_minutes = minutes

    def _release_courier(self):
        courier = self.assigned_courier
        if courier is not None:
            courier.available = True

    # ------------------------------------------------------------------
    # Rehydration
    # ------------------------------------------------------------------

    def restore(
        self,
        status: DeliveryStatus,
        courier: Optional[Courier] = None,
        rating: Optional[int] = None,
        review: Optional[str] = None,
        estimated_minutes: Optional[int] = None,
        timestamps: Optional[Dict[DeliveryStatus, Optional[datetime]]] = None,
    ):
        """
        Overwrite mutable state with values read back from storage.

        No transition rules and no courier side effects apply here.
        """
        self.status = status
        self._link_courier(courier)
        self.rating = rating if is_valid_rating(rating) else None
        self.review = review or None
        if estimated_minutes is not None and estimated_minutes > 0:
            self.estimated_minutes = estimated_minutes
        for ts_status, value in (timestamps or {}).items():
            if value is not None:
                setattr(self, TIMESTAMP_FIELDS[ts_status], value)

    def __repr__(self):
        return (
            f"<Delivery(id={self.delivery_id}, status='{self.status.value}', "
            f"courier='{self.assigned_courier_id}')>"
        )
