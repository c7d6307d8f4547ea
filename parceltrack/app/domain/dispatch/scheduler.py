"""
Assignment Scheduler (Domain Logic).

Matches REQUESTED deliveries to available couriers and keeps a FIFO backlog
of the ones that could not be matched.

Policy:
- First-fit: the first available courier in insertion order wins.
  No load balancing, no rating weighting.
- The backlog drains in FIFO order and stops at the first entry that
  cannot be matched; later entries stay queued.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional

from parceltrack.app.models.courier import Courier
from parceltrack.app.models.delivery import Delivery
from parceltrack.app.models.delivery_enums import DeliveryStatus

logger = logging.getLogger("parceltrack.scheduler")


class AssignmentScheduler:
    """
    First-fit courier scheduler with a FIFO backlog.

    The courier mapping is shared with the record store; its insertion order
    is the scan order.
    """

    def __init__(self, couriers: Dict[str, Courier]):
        self._couriers = couriers
        self._backlog: Deque[Delivery] = deque()

    @property
    def backlog(self) -> List[int]:
        """Delivery IDs currently queued, oldest first."""
        return [d.delivery_id for d in self._backlog]

    def __len__(self) -> int:
        return len(self._backlog)

    def __contains__(self, delivery: Delivery) -> bool:
        return delivery in self._backlog

    def find_available_courier(self) -> Optional[Courier]:
        """Return the first available courier in insertion order, if any."""
        for courier in self._couriers.values():
            if courier.available:
                return courier
        return None

    def assign_if_available(self, delivery: Delivery) -> Optional[Courier]:
        """
        Assign a delivery to the first available courier, or queue it.

        Args:
            delivery: A delivery in REQUESTED status

        Returns:
            The assigned courier, or None if the delivery was queued
        """
        courier = self.find_available_courier()
        if courier is None:
            if delivery not in self._backlog:
                self._backlog.append(delivery)
            logger.info(
                "No available couriers, delivery queued",
                extra={"delivery_id": delivery.delivery_id, "backlog_size": len(self._backlog)},
            )
            return None

        delivery.assign(courier)
        logger.info(
            "Delivery assigned",
            extra={"delivery_id": delivery.delivery_id, "courier_id": courier.id},
        )
        return courier

    def drain_backlog(self) -> List[Delivery]:
        """
        Assign queued deliveries in FIFO order until no courier is free.

        Returns:
            Deliveries assigned during this pass, in assignment order
        """
        assigned = []
        while self._backlog:
            courier = self.find_available_courier()
            if courier is None:
                break
            delivery = self._backlog.popleft()
            if delivery.status != DeliveryStatus.REQUESTED:
                continue
            delivery.assign(courier)
            assigned.append(delivery)
            logger.info(
                "Queued delivery auto-assigned",
                extra={"delivery_id": delivery.delivery_id, "courier_id": courier.id},
            )
        return assigned

    def enqueue(self, delivery: Delivery):
        """Queue a delivery without attempting assignment."""
        if delivery not in self._backlog:
            self._backlog.append(delivery)

    def remove(self, delivery: Delivery) -> bool:
        """Drop a delivery from the backlog. Returns True if it was queued."""
        try:
            self._backlog.remove(delivery)
        except ValueError:
            return False
        return True

    def clear(self):
        self._backlog.clear()
