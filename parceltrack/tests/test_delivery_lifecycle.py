"""
Unit tests for the Delivery state machine and the Courier/Member records.
"""

import gc

import pytest

from parceltrack.app.core.exceptions import InvalidInputError, InvalidStateError
from parceltrack.app.models.courier import Courier
from parceltrack.app.models.delivery import Delivery
from parceltrack.app.models.delivery_enums import Category, DeliveryStatus, Priority
from parceltrack.app.models.member import Member


def new_delivery(priority=Priority.MEDIUM, delivery_id=1):
    return Delivery(
        delivery_id=delivery_id,
        sender=Member("Alice", "M1001"),
        receiver_name="Bob",
        receiver_phone="555-0100",
        receiver_address="Block C",
        item="Thesis draft",
        priority=priority,
    )


def delivered(courier):
    d = new_delivery()
    d.assign(courier)
    d.mark_out_for_delivery()
    d.mark_delivered()
    return d


# Identity records

def test_member_role_defaults_to_member():
    assert Member("Carol", "M3003", "").role == "Member"
    assert Member("Carol", "M3003", None).role == "Member"


def test_member_id_is_generated_when_missing():
    member = Member("Carol")
    assert member.id.startswith("M")
    assert 1000 <= int(member.id[1:]) <= 9999


def test_courier_average_rating():
    courier = Courier("Dan", "C1", "1234")
    assert courier.average_rating == 0.0
    assert courier.add_rating(4)
    assert courier.add_rating(5)
    assert not courier.add_rating(6)
    assert not courier.add_rating(0)
    assert courier.ratings == [4, 5]
    assert courier.average_rating == 4.5


# Creation

@pytest.mark.parametrize("priority,minutes", [
    (Priority.HIGH, 10),
    (Priority.MEDIUM, 20),
    (Priority.LOW, 30),
    (Priority.UNKNOWN, 30),
    (None, 30),
])
def test_eta_derived_from_priority(priority, minutes):
    assert new_delivery(priority).estimated_minutes == minutes


def test_new_delivery_defaults():
    d = new_delivery(priority=None)
    assert d.status == DeliveryStatus.REQUESTED
    assert d.priority == Priority.UNKNOWN
    assert d.category == Category.OTHER
    assert d.requested_at is not None
    assert d.assigned_at is None
    assert d.rating is None and d.review is None
    assert d.assigned_courier is None


# Transitions

def test_full_lifecycle_sets_timestamps_and_toggles_courier():
    courier = Courier("Dan", "C1")
    d = new_delivery()

    d.assign(courier)
    assert d.status == DeliveryStatus.ASSIGNED
    assert d.assigned_courier is courier
    assert d.assigned_courier_id == "C1"
    assert courier.available is False
    assert d.assigned_at is not None

    d.mark_out_for_delivery()
    assert d.status == DeliveryStatus.OUT_FOR_DELIVERY
    assert d.out_for_delivery_at is not None

    d.mark_delivered()
    assert d.status == DeliveryStatus.DELIVERED
    assert d.delivered_at is not None
    assert courier.available is True

    assert d.mark_completed(5, "Quick and careful")
    assert d.status == DeliveryStatus.COMPLETED
    assert d.completed_at is not None
    assert d.rating == 5
    assert d.review == "Quick and careful"
    assert courier.ratings == [5]


def test_not_delivered_releases_courier():
    courier = Courier("Dan", "C1")
    d = new_delivery()
    d.assign(courier)
    d.mark_out_for_delivery()
    d.mark_not_delivered()
    assert d.status == DeliveryStatus.NOT_DELIVERED
    assert d.not_delivered_at is not None
    assert courier.available is True


def test_out_for_delivery_requires_assigned():
    d = new_delivery()
    with pytest.raises(InvalidStateError):
        d.mark_out_for_delivery()
    assert d.status == DeliveryStatus.REQUESTED
    assert d.out_for_delivery_at is None


def test_delivered_requires_out_for_delivery():
    courier = Courier("Dan", "C1")
    d = new_delivery()
    d.assign(courier)
    with pytest.raises(InvalidStateError):
        d.mark_delivered()
    assert courier.available is False


def test_transition_cannot_repeat():
    courier = Courier("Dan", "C1")
    d = new_delivery()
    d.assign(courier)
    d.mark_out_for_delivery()
    first = d.out_for_delivery_at
    with pytest.raises(InvalidStateError):
        d.mark_out_for_delivery()
    assert d.out_for_delivery_at == first


def test_release_happens_exactly_once():
    courier = Courier("Dan", "C1")
    d = delivered(courier)
    other = new_delivery(delivery_id=2)
    other.assign(courier)
    with pytest.raises(InvalidStateError):
        d.mark_not_delivered()
    # the failed second release must not free the courier from its new job
    assert courier.available is False


def test_assign_twice_rejected():
    d = new_delivery()
    d.assign(Courier("Dan", "C1"))
    second = Courier("Eve", "C2")
    with pytest.raises(InvalidStateError):
        d.assign(second)
    assert d.assigned_courier_id == "C1"
    assert second.available is True


def test_completed_requires_delivery_outcome():
    d = new_delivery()
    with pytest.raises(InvalidStateError):
        d.mark_completed(5, "early")
    assert d.rating is None


# Completion rating

@pytest.mark.parametrize("rating", [0, 6, -1, None])
def test_invalid_rating_is_discarded(rating):
    courier = Courier("Dan", "C1")
    d = delivered(courier)
    assert d.mark_completed(rating, "") is False
    assert d.rating is None
    assert d.review is None
    assert courier.ratings == []
    assert d.status == DeliveryStatus.COMPLETED


def test_valid_rating_appends_exactly_once():
    courier = Courier("Dan", "C1")
    courier.add_rating(3)
    d = delivered(courier)
    d.mark_completed(1, None)
    assert courier.ratings == [3, 1]


# ETA override

def test_update_eta_while_active():
    d = new_delivery(Priority.HIGH)
    d.assign(Courier("Dan", "C1"))
    d.update_eta(45)
    assert d.estimated_minutes == 45


@pytest.mark.parametrize("minutes", [0, -5, "10", 2.5, True])
def test_update_eta_rejects_non_positive_or_non_int(minutes):
    d = new_delivery()
    d.assign(Courier("Dan", "C1"))
    with pytest.raises(InvalidInputError):
        d.update_eta(minutes)
    assert d.estimated_minutes == 20


def test_update_eta_rejected_when_not_active():
    d = new_delivery()
    with pytest.raises(InvalidStateError):
        d.update_eta(15)


# Weak courier reference

def test_courier_reference_is_weak():
    d = new_delivery()
    courier = Courier("Dan", "C1")
    d.assign(courier)
    d.mark_out_for_delivery()
    d.mark_delivered()
    del courier
    gc.collect()
    assert d.assigned_courier is None
    assert d.assigned_courier_id == "C1"


def test_relink_courier_requires_matching_id():
    d = delivered(Courier("Dan", "C1"))
    replacement = Courier("Dan", "C1")
    d.relink_courier(replacement)
    assert d.assigned_courier is replacement

    with pytest.raises(InvalidInputError):
        d.relink_courier(Courier("Eve", "C2"))
    assert d.assigned_courier is replacement
