"""
Member model.

A member is whoever sends or receives a delivery. Members are not stored on
their own; they exist for the length of a request and are rebuilt as
placeholders when deliveries are reloaded.
"""

import random
from typing import Optional

DEFAULT_ROLE = "Member"
PLACEHOLDER_NAME = "Unknown"


def generate_member_id() -> str:
    """Generate a member ID of the form M1000..M9999."""
    return f"M{random.randint(1000, 9999)}"


class Member:
    """Immutable identity of a sender or receiver."""

    __slots__ = ("_name", "_id", "_role")

    def __init__(self, name: str, member_id: Optional[str] = None, role: Optional[str] = None):
        self._name = name
        self._id = member_id or generate_member_id()
        self._role = role or DEFAULT_ROLE

    @property
    def name(self) -> str:
        return self._name

    @property
    def id(self) -> str:
        return self._id

    @property
    def role(self) -> str:
        return self._role

    @classmethod
    def placeholder(cls, member_id: str) -> "Member":
        """Stand-in for a sender whose details were not persisted."""
        return cls(PLACEHOLDER_NAME, member_id, DEFAULT_ROLE)

    def __eq__(self, other):
        if not isinstance(other, Member):
            return NotImplemented
        return (self._name, self._id, self._role) == (other._name, other._id, other._role)

    def __hash__(self):
        return hash((self._name, self._id, self._role))

    def __repr__(self):
        return f"<Member(id='{self._id}', name='{self._name}', role='{self._role}')>"
