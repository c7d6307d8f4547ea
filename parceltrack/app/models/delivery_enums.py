"""
Delivery-related enumerations.
"""

import enum


class DeliveryStatus(str, enum.Enum):
    """
    Delivery status enumeration.

    Status flow:
        REQUESTED → ASSIGNED → OUT_FOR_DELIVERY → DELIVERED | NOT_DELIVERED → COMPLETED
    """
    REQUESTED = "REQUESTED"  # Created by a member, awaiting a courier
    ASSIGNED = "ASSIGNED"  # Courier assigned but not started
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"  # Courier is on the way
    DELIVERED = "DELIVERED"  # Handed over, awaiting confirmation
    NOT_DELIVERED = "NOT_DELIVERED"  # Failed attempt
    COMPLETED = "COMPLETED"  # Confirmed by sender or receiver


# Statuses in which a courier is still holding the delivery
ACTIVE_STATUSES = frozenset({DeliveryStatus.ASSIGNED, DeliveryStatus.OUT_FOR_DELIVERY})

# Statuses from which a delivery may be removed
DELETABLE_STATUSES = frozenset({DeliveryStatus.REQUESTED, DeliveryStatus.COMPLETED})


class Priority(str, enum.Enum):
    """Delivery priority enumeration."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @property
    def estimated_minutes(self) -> int:
        """Default ETA for this priority."""
        return {Priority.HIGH: 10, Priority.MEDIUM: 20}.get(self, 30)

    @classmethod
    def parse(cls, value) -> "Priority":
        """Lenient parse; empty or unknown input maps to UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.UNKNOWN


class Category(str, enum.Enum):
    """Delivery category enumeration."""
    DOCUMENTS = "DOCUMENTS"
    ELECTRONICS = "ELECTRONICS"
    FOOD = "FOOD"
    LAB_EQUIPMENT = "LAB_EQUIPMENT"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "Category":
        """Lenient parse; empty or unknown input maps to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.OTHER
