"""
Persistence Codec (Domain Logic).

Couriers and deliveries are stored as two text files, one record per line,
fields joined by "|". A "|" (or a line break) inside a text field is replaced
by a space before writing, so the encoding is lossy for those characters.

Courier line:
    id|name|pin

Delivery line (19 fields):
    id|senderId|receiverName|receiverPhone|receiverAddress|item|priority|
    category|status|assignedCourierId|rating|review|requestedAt|assignedAt|
    outForDeliveryAt|deliveredAt|notDeliveredAt|completedAt|estimatedMinutes

Decoding is lossy on purpose: senders come back as placeholder members
("Unknown" + stored id), and couriers referenced by a delivery but missing
from the courier records are fabricated as placeholders. Only id, status,
assigned courier id, rating and review are guaranteed to round-trip.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from parceltrack.app.core.exceptions import PersistenceError
from parceltrack.app.models.courier import Courier
from parceltrack.app.models.delivery import TIMESTAMP_FIELDS, Delivery
from parceltrack.app.models.delivery_enums import Category, DeliveryStatus, Priority
from parceltrack.app.models.member import Member

logger = logging.getLogger("parceltrack.persistence")

DELIMITER = "|"

COURIER_MIN_FIELDS = 2
DELIVERY_MIN_FIELDS = 13
DELIVERY_FIELDS = 19

# Column index of each status timestamp in a delivery line
TIMESTAMP_COLUMNS = {
    DeliveryStatus.REQUESTED: 12,
    DeliveryStatus.ASSIGNED: 13,
    DeliveryStatus.OUT_FOR_DELIVERY: 14,
    DeliveryStatus.DELIVERED: 15,
    DeliveryStatus.NOT_DELIVERED: 16,
    DeliveryStatus.COMPLETED: 17,
}
ETA_COLUMN = 18


def sanitize(value) -> str:
    """Render a field for writing; None becomes empty."""
    if value is None:
        return ""
    text = str(value)
    for ch in (DELIMITER, "\r", "\n"):
        text = text.replace(ch, " ")
    return text


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else ""


def _parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _field(parts: List[str], index: int) -> str:
    return parts[index] if index < len(parts) else ""


# ----------------------------------------------------------------------
# Couriers
# ----------------------------------------------------------------------

def encode_courier(courier: Courier) -> str:
    return DELIMITER.join([sanitize(courier.id), sanitize(courier.name), sanitize(courier.pin)])


def decode_courier(line: str) -> Optional[Courier]:
    """Parse one courier line; returns None for blank or short lines."""
    line = line.strip()
    if not line:
        return None
    parts = line.split(DELIMITER)
    if len(parts) < COURIER_MIN_FIELDS:
        return None
    courier_id, name = parts[0], parts[1]
    pin = parts[2] if len(parts) >= 3 else ""
    return Courier(name, courier_id, pin)


# ----------------------------------------------------------------------
# Deliveries
# ----------------------------------------------------------------------

def encode_delivery(delivery: Delivery) -> str:
    fields = [
        str(delivery.delivery_id),
        sanitize(delivery.sender.id),
        sanitize(delivery.receiver_name),
        sanitize(delivery.receiver_phone),
        sanitize(delivery.receiver_address),
        sanitize(delivery.item),
        delivery.priority.value,
        delivery.category.value,
        delivery.status.value,
        sanitize(delivery.assigned_courier_id),
        "" if delivery.rating is None else str(delivery.rating),
        sanitize(delivery.review),
    ]
    fields.extend(
        _format_timestamp(getattr(delivery, TIMESTAMP_FIELDS[status]))
        for status in TIMESTAMP_COLUMNS
    )
    fields.append(str(delivery.estimated_minutes))
    return DELIMITER.join(fields)


def decode_delivery(line: str, couriers: Dict[str, Courier]) -> Optional[Delivery]:
    """
    Parse one delivery line.

    Args:
        line: Raw line from the deliveries file
        couriers: Courier records by id. A referenced courier id that is not
            present is added to this mapping as a placeholder.

    Returns:
        The rebuilt delivery, or None if the line is blank, short, or has an
        unparseable delivery id
    """
    line = line.strip()
    if not line:
        return None
    parts = line.split(DELIMITER)
    if len(parts) < DELIVERY_MIN_FIELDS:
        return None

    delivery_id = _parse_int(parts[0])
    if delivery_id is None or delivery_id <= 0:
        return None

    priority = Priority.parse(parts[6])
    delivery = Delivery(
        delivery_id=delivery_id,
        sender=Member.placeholder(parts[1]),
        receiver_name=parts[2],
        receiver_phone=parts[3],
        receiver_address=parts[4],
        item=parts[5],
        priority=priority,
        category=Category.parse(parts[7]),
    )

    try:
        status = DeliveryStatus(parts[8])
    except ValueError:
        status = DeliveryStatus.REQUESTED

    courier = None
    courier_id = parts[9]
    if courier_id:
        courier = couriers.get(courier_id)
        if courier is None:
            courier = Courier.placeholder(courier_id)
            couriers[courier_id] = courier
            logger.warning(
                "Delivery references unknown courier, placeholder created",
                extra={"delivery_id": delivery_id, "courier_id": courier_id},
            )

    delivery.restore(
        status=status,
        courier=courier,
        rating=_parse_int(parts[10]),
        review=parts[11],
        estimated_minutes=_parse_int(_field(parts, ETA_COLUMN)),
        timestamps={
            ts_status: _parse_timestamp(_field(parts, column))
            for ts_status, column in TIMESTAMP_COLUMNS.items()
        },
    )
    return delivery


# ----------------------------------------------------------------------
# Files
# ----------------------------------------------------------------------

class PersistenceCodec:
    """
    Reads and rewrites the courier and delivery record files.

    Every save is a full rewrite. A missing file loads as an empty record set.
    I/O failures are raised as PersistenceError.
    """

    def __init__(self, couriers_path: Path, deliveries_path: Path):
        self.couriers_path = Path(couriers_path)
        self.deliveries_path = Path(deliveries_path)

    @staticmethod
    def _write_lines(path: Path, lines: Iterable[str]):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
        except OSError as e:
            raise PersistenceError(f"Error saving {path.name}: {e}", path=str(path)) from e

    @staticmethod
    def _read_lines(path: Path) -> List[str]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Error loading {path.name}: {e}", path=str(path)) from e

    def save_couriers(self, couriers: Iterable[Courier]):
        self._write_lines(self.couriers_path, (encode_courier(c) for c in couriers))

    def save_deliveries(self, deliveries: Iterable[Delivery]):
        self._write_lines(self.deliveries_path, (encode_delivery(d) for d in deliveries))

    def load_couriers(self) -> Dict[str, Courier]:
        """Courier records by id, in file order. Later duplicates are ignored."""
        couriers: Dict[str, Courier] = {}
        for line in self._read_lines(self.couriers_path):
            courier = decode_courier(line)
            if courier is None or courier.id in couriers:
                continue
            couriers[courier.id] = courier
        logger.info("Loaded couriers", extra={"count": len(couriers), "path": str(self.couriers_path)})
        return couriers

    def load_deliveries(self, couriers: Dict[str, Courier]) -> List[Delivery]:
        """
        Delivery records in file order.

        Placeholder couriers for unknown ids are added to `couriers`.
        Lines repeating an already-loaded delivery id are ignored.
        """
        deliveries: List[Delivery] = []
        seen = set()
        for line in self._read_lines(self.deliveries_path):
            delivery = decode_delivery(line, couriers)
            if delivery is None:
                continue
            if delivery.delivery_id in seen:
                logger.warning("Duplicate delivery record ignored", extra={"delivery_id": delivery.delivery_id})
                continue
            seen.add(delivery.delivery_id)
            deliveries.append(delivery)
        logger.info("Loaded deliveries", extra={"count": len(deliveries), "path": str(self.deliveries_path)})
        return deliveries
