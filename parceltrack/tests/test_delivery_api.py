"""
Integration tests for the member, courier and admin HTTP endpoints.
"""

import asyncio
import logging

import pytest

from parceltrack.app.domain.persistence.codec import PersistenceCodec

MEMBER = {"name": "Alice", "id": "M1001", "role": "Student"}


def delivery_payload(**overrides):
    payload = {
        "member": MEMBER,
        "receiver_name": "Bob",
        "receiver_phone": "555-0100",
        "receiver_address": "Block C, Room 12",
        "item": "Lab notes",
        "priority": "HIGH",
        "category": "DOCUMENTS",
    }
    payload.update(overrides)
    return payload


async def add_courier(client, courier_id="C1", name="Dan", pin="1234"):
    response = await client.post("/v1/admin/couriers", json={"name": name, "id": courier_id, "pin": pin})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["persistence_error"] is None
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_request_without_courier_is_queued(client):
    response = await client.post("/v1/member/deliveries", json=delivery_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 1
    assert data["status"] == "REQUESTED"
    assert data["estimated_minutes"] == 10
    assert data["queued"] is True

    backlog = await client.get("/v1/admin/backlog")
    assert backlog.json() == {"delivery_ids": [1], "size": 1}

    await add_courier(client)
    listing = await client.get("/v1/member/members/M1001/deliveries")
    delivery = listing.json()["deliveries"][0]
    assert delivery["status"] == "ASSIGNED"
    assert delivery["assigned_courier_id"] == "C1"
    assert delivery["assigned_courier_name"] == "Dan"


@pytest.mark.asyncio
async def test_request_with_courier_is_assigned(client):
    await add_courier(client)
    response = await client.post("/v1/member/deliveries", json=delivery_payload(priority="whenever"))
    data = response.json()
    assert data["queued"] is False
    assert data["status"] == "ASSIGNED"
    assert data["priority"] == "UNKNOWN"
    assert data["estimated_minutes"] == 30


@pytest.mark.asyncio
async def test_request_with_empty_item_rejected(client):
    response = await client.post("/v1/member/deliveries", json=delivery_payload(item="  "))
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_INPUT_001"


@pytest.mark.asyncio
async def test_request_missing_member_is_validation_error(client):
    payload = delivery_payload()
    del payload["member"]
    response = await client.post("/v1/member/deliveries", json=payload)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_full_lifecycle_over_http(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    base = "/v1/courier/couriers/C1/deliveries/1"

    response = await client.post(f"{base}/out-for-delivery")
    assert response.status_code == 200
    assert response.json()["status"] == "OUT_FOR_DELIVERY"

    response = await client.patch(f"{base}/eta", json={"estimated_minutes": 7})
    assert response.json()["estimated_minutes"] == 7

    response = await client.post(f"{base}/delivered")
    assert response.json()["status"] == "DELIVERED"
    assert response.json()["delivered_at"] is not None

    response = await client.post(
        "/v1/member/deliveries/1/confirm",
        json={"member": MEMBER, "rating": 5, "review": "Fast"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "COMPLETED"
    assert data["rating"] == 5

    rating = await client.get("/v1/courier/couriers/C1/rating")
    assert rating.json() == {"courier_id": "C1", "average_rating": 5.0, "ratings_count": 1}


@pytest.mark.asyncio
async def test_illegal_transition_is_conflict(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())

    response = await client.post("/v1/courier/couriers/C1/deliveries/1/delivered")
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_other_courier_is_forbidden(client):
    await add_courier(client, "C1")
    await add_courier(client, "C2", "Eve")
    await client.post("/v1/member/deliveries", json=delivery_payload())

    response = await client.post("/v1/courier/couriers/C2/deliveries/1/out-for-delivery")
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_unknown_delivery_and_bad_id(client):
    await add_courier(client)
    response = await client.post("/v1/courier/couriers/C1/deliveries/42/out-for-delivery")
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.post("/v1/courier/couriers/C1/deliveries/abc/out-for-delivery")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_not_delivered_with_note(client, service):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    await client.post("/v1/courier/couriers/C1/deliveries/1/out-for-delivery")

    response = await client.post(
        "/v1/courier/couriers/C1/deliveries/1/not-delivered", json={"note": "Office closed"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "NOT_DELIVERED"
    assert service.get_courier("C1").available is True


@pytest.mark.asyncio
async def test_confirm_with_out_of_range_rating(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    await client.post("/v1/courier/couriers/C1/deliveries/1/out-for-delivery")
    await client.post("/v1/courier/couriers/C1/deliveries/1/delivered")

    response = await client.post("/v1/member/deliveries/1/confirm", json={"member": MEMBER, "rating": 9})
    assert response.status_code == 400

    stranger = {"name": "Mallory", "id": "M6666"}
    response = await client.post("/v1/member/deliveries/1/confirm", json={"member": stranger, "rating": 1})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_receipt(client):
    await client.post("/v1/member/deliveries", json=delivery_payload())

    response = await client.post("/v1/member/deliveries/1/receipt", json={"member": {"name": "bob"}})
    assert response.status_code == 200
    data = response.json()
    assert data["delivery_id"] == 1
    assert data["sender_name"] == "Alice"
    assert data["courier_id"] is None


@pytest.mark.asyncio
async def test_courier_pin_never_returned(client):
    created = await add_courier(client, pin="9876")
    assert "pin" not in created

    listing = await client.get("/v1/admin/couriers")
    assert listing.json()["total"] == 1
    assert "pin" not in listing.json()["couriers"][0]


@pytest.mark.asyncio
async def test_duplicate_courier_rejected(client):
    await add_courier(client)
    response = await client.post("/v1/admin/couriers", json={"name": "Other", "id": "C1"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_courier_blocked_while_out_for_delivery(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    await client.post("/v1/courier/couriers/C1/deliveries/1/out-for-delivery")

    response = await client.delete("/v1/admin/couriers/C1")
    assert response.status_code == 409

    await client.post("/v1/courier/couriers/C1/deliveries/1/delivered")
    response = await client.delete("/v1/admin/couriers/C1")
    assert response.status_code == 200
    assert response.json() == {"courier_id": "C1", "deleted": True}


@pytest.mark.asyncio
async def test_delete_delivery(client):
    await client.post("/v1/member/deliveries", json=delivery_payload())
    response = await client.delete("/v1/admin/deliveries/1")
    assert response.json() == {"delivery_id": 1, "deleted": True}

    response = await client.delete("/v1/admin/deliveries/1")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_deliveries_by_status(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    await client.post("/v1/member/deliveries", json=delivery_payload())

    response = await client.get("/v1/admin/deliveries", params={"status": "REQUESTED"})
    data = response.json()
    assert data["total"] == 1
    assert data["deliveries"][0]["id"] == 2


@pytest.mark.asyncio
async def test_dashboard_and_audit(client):
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())
    await client.post("/v1/member/deliveries", json=delivery_payload())

    dashboard = (await client.get("/v1/admin/dashboard")).json()
    assert dashboard["total_deliveries"] == 2
    assert dashboard["by_status"]["ASSIGNED"] == 1
    assert dashboard["by_status"]["REQUESTED"] == 1
    assert dashboard["backlog_size"] == 1
    assert dashboard["average_rating"] is None
    assert dashboard["couriers"][0]["average_rating"] == 0.0

    audit = (await client.get("/v1/admin/audit", params={"action": "DELIVERY_QUEUED"})).json()
    assert audit["total"] == 1
    assert audit["events"][0]["metadata"]["delivery_id"] == 2


@pytest.mark.asyncio
async def test_concurrent_requests_get_distinct_ids(client, service):
    await add_courier(client)
    responses = await asyncio.gather(
        *[client.post("/v1/member/deliveries", json=delivery_payload()) for _ in range(12)]
    )
    ids = sorted(r.json()["id"] for r in responses)
    assert ids == list(range(1, 13))
    assert sum(1 for r in responses if not r.json()["queued"]) == 1
    assert len(service.backlog()) == 11


@pytest.mark.asyncio
async def test_request_log_names_route_ids(client, caplog):
    caplog.set_level(logging.INFO, logger="parceltrack")
    await add_courier(client)
    await client.post("/v1/member/deliveries", json=delivery_payload())

    response = await client.post(
        "/v1/courier/couriers/C1/deliveries/1/out-for-delivery",
        headers={"X-Correlation-ID": "trace-42"},
    )
    assert response.headers["X-Correlation-ID"] == "trace-42"
    assert "X-Process-Time" in response.headers

    record = next(r for r in caplog.records if getattr(r, "correlation_id", None) == "trace-42")
    assert record.levelno == logging.INFO
    assert record.courier_id == "C1"
    assert record.delivery_id == "1"


@pytest.mark.asyncio
async def test_request_log_flags_unsaved_records(client, service, caplog, tmp_path):
    caplog.set_level(logging.INFO, logger="parceltrack")
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    service.codec = PersistenceCodec(blocker / "c.csv", blocker / "d.csv")

    response = await client.post("/v1/member/deliveries", json=delivery_payload())
    assert response.status_code == 201

    record = next(r for r in caplog.records if r.getMessage() == "Request applied, records not saved")
    assert record.levelno == logging.WARNING
    assert "persistence_error" in record.__dict__
