# smartcities/routes/notifications.py
# Abonnement aux fils de ville / zone. Lecture des notifications : hors périmètre.
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import crud
from smartcities.db import get_db
from smartcities.deps import get_notifier
from smartcities.errors import NotFound
from smartcities.schemas import SubscriptionIn
from smartcities.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _sub_out(sub):
    return {
        "id": sub.id,
        "user_id": sub.user_id,
        "city": sub.city,
        "latitude": sub.latitude,
        "longitude": sub.longitude,
        "radius_km": sub.radius_km,
        "created_at": sub.created_at,
    }


@router.post("/subscriptions", status_code=201)
async def subscribe(
    payload: SubscriptionIn,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    if await crud.get_user(db, payload.user_id) is None:
        raise NotFound("Utilisateur introuvable.")
    sub = await notifier.subscribe_to_region(
        payload.user_id,
        city=payload.city,
        latitude=payload.latitude,
        longitude=payload.longitude,
        radius_km=payload.radius_km,
    )
    await db.commit()
    return _sub_out(sub)


@router.get("/subscriptions")
async def list_subscriptions(
    user_id: int = Query(...),
    notifier: NotificationService = Depends(get_notifier),
):
    return [_sub_out(s) for s in await notifier.list_subscriptions(user_id)]
