"""
Analytics Service.

Aggregates delivery and courier records for the admin dashboard.
Focused on READ-ONLY operations.
"""

from typing import Iterable

from parceltrack.app.models.courier import Courier
from parceltrack.app.models.delivery import Delivery
from parceltrack.app.models.delivery_enums import DeliveryStatus
from parceltrack.app.schemas.analytics import CourierPerformance, DashboardStats


class AnalyticsService:

    @staticmethod
    def get_dashboard(
        deliveries: Iterable[Delivery],
        couriers: Iterable[Courier],
        backlog_size: int = 0
    ) -> DashboardStats:
        """Counts by status, average rating and per-courier performance."""
        by_status = {status.value: 0 for status in DeliveryStatus}
        total = 0
        rating_sum = 0
        rated = 0

        for delivery in deliveries:
            total += 1
            by_status[delivery.status.value] += 1
            if delivery.rating is not None:
                rating_sum += delivery.rating
                rated += 1

        completed = by_status[DeliveryStatus.COMPLETED.value]
        delivered = by_status[DeliveryStatus.DELIVERED.value]
        failed = by_status[DeliveryStatus.NOT_DELIVERED.value]

        return DashboardStats(
            total_deliveries=total,
            by_status=by_status,
            completed=completed,
            delivered_unconfirmed=delivered,
            failed=failed,
            pending=total - completed - delivered - failed,
            average_rating=round(rating_sum / rated, 2) if rated else None,
            rated_deliveries=rated,
            backlog_size=backlog_size,
            couriers=[
                CourierPerformance(
                    courier_id=c.id,
                    name=c.name,
                    available=c.available,
                    average_rating=round(c.average_rating, 2),
                    ratings_count=c.ratings_count,
                )
                for c in couriers
            ],
        )
