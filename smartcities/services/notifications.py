# smartcities/services/notifications.py
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import crud
from smartcities.config import SUBSCRIPTION_DEFAULT_RADIUS_KM, SUBSCRIPTION_MAX_RADIUS_KM
from smartcities.models import Notification, NotificationSubscription, Report
from smartcities.services.geo import Coordinate, bounding_box, haversine_km

logger = logging.getLogger(__name__)


class NotificationService:
    """Écrit les notifications (la livraison est gérée ailleurs)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(
        self,
        user_id: int,
        message: str,
        type_: str,
        related_id,
        initiator_id: Optional[int] = None,
    ) -> Notification:
        notif = await crud.insert_notification(
            self.db,
            user_id=user_id,
            message=message,
            type_=type_,
            related_id=related_id,
            initiator_id=initiator_id,
        )
        logger.info("[notify] user=%s type=%s related=%s", user_id, type_, related_id)
        return notif

    async def notify_region(self, report: Report) -> int:
        """
        Prévient les abonnés de la ville du signalement, ou ceux dont la zone
        (position + rayon) couvre le signalement. Un seul message par abonné,
        jamais à l'auteur.
        """
        where = Coordinate(report.latitude, report.longitude)
        # boîte large : le rayon propre à chaque abonnement est vérifié ensuite
        box = bounding_box(where, SUBSCRIPTION_MAX_RADIUS_KM)
        subs = await crud.subscriptions_for_region(self.db, report.city, box)

        notified = set()
        for sub in subs:
            if sub.user_id == report.user_id or sub.user_id in notified:
                continue
            if not (sub.city and sub.city == report.city):
                if sub.latitude is None or sub.longitude is None:
                    continue
                radius = sub.radius_km or SUBSCRIPTION_DEFAULT_RADIUS_KM
                if haversine_km(Coordinate(sub.latitude, sub.longitude), where) > radius:
                    continue
            await self.create_notification(
                sub.user_id,
                f"Nouveau signalement dans votre zone : {report.title}",
                "report",
                report.id,
                initiator_id=report.user_id,
            )
            notified.add(sub.user_id)
        return len(notified)

    async def subscribe_to_region(
        self,
        user_id: int,
        city: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> NotificationSubscription:
        return await crud.insert_subscription(
            self.db,
            user_id=user_id,
            city=city,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
        )

    async def list_subscriptions(self, user_id: int) -> List[NotificationSubscription]:
        return await crud.subscriptions_of_user(self.db, user_id)
