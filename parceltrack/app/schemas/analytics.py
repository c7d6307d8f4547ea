"""
Analytics and admin read-model schemas.
"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class CourierPerformance(BaseModel):
    courier_id: str
    name: str
    available: bool
    average_rating: float  # 0.0 until the first rating
    ratings_count: int


class DashboardStats(BaseModel):
    """Admin dashboard: delivery counts and courier performance."""
    total_deliveries: int
    by_status: Dict[str, int]
    completed: int
    delivered_unconfirmed: int
    failed: int
    pending: int
    average_rating: Optional[float]
    rated_deliveries: int
    backlog_size: int
    couriers: List[CourierPerformance]


class BacklogResponse(BaseModel):
    """Deliveries waiting for a courier, oldest first."""
    delivery_ids: List[int]
    size: int


class AuditEventResponse(BaseModel):
    action: str
    actor_id: Optional[str]
    metadata: Dict[str, Any]
    timestamp: str


class AuditTrailResponse(BaseModel):
    events: List[AuditEventResponse]
    total: int
