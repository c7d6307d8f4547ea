"""
Courier model.

Couriers are created by an admin and carry availability plus a rating
history. Availability is toggled by delivery transitions; ratings are
appended when a delivery is completed.
"""

from typing import List

from parceltrack.app.models.member import PLACEHOLDER_NAME

MIN_RATING = 1
MAX_RATING = 5


def is_valid_rating(rating) -> bool:
    """True for integers within MIN_RATING..MAX_RATING."""
    return (
        isinstance(rating, int)
        and not isinstance(rating, bool)
        and MIN_RATING <= rating <= MAX_RATING
    )


class Courier:
    """
    Courier model.

    A courier handles at most one delivery at a time: it is unavailable
    between assignment and the delivered / not-delivered transition.
    """

    def __init__(self, name: str, courier_id: str, pin: str = "", available: bool = True):
        self.name = name
        self.id = courier_id
        self.pin = pin or ""
        self.available = available
        self.ratings: List[int] = []

    @classmethod
    def placeholder(cls, courier_id: str) -> "Courier":
        """Stand-in for a courier referenced by a delivery but missing from the courier records."""
        return cls(PLACEHOLDER_NAME, courier_id, "")

    def add_rating(self, rating: int) -> bool:
        """
        Append a rating to the history.

        Returns:
            True if the rating was recorded, False if it was out of range
        """
        if not is_valid_rating(rating):
            return False
        self.ratings.append(rating)
        return True

    @property
    def average_rating(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(self.ratings) / len(self.ratings)

    @property
    def ratings_count(self) -> int:
        return len(self.ratings)

    def __repr__(self):
        return f"<Courier(id='{self.id}', name='{self.name}', available={self.available})>"
