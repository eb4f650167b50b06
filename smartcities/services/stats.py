# smartcities/services/stats.py
import logging
from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import config, crud
from smartcities.errors import NotFound, ValidationFailed
from smartcities.schemas import ReportCategory, ReportFilters
from smartcities.services.reports import list_reports, serialize_reports

logger = logging.getLogger(__name__)


async def user_stats(db: AsyncSession, user_id: int) -> Dict[str, Any]:
    user = await crud.get_user(db, user_id)
    if user is None:
        raise NotFound("Utilisateur introuvable.")

    counts = await crud.user_activity_counts(db, user.id)
    votes = await crud.votes_cast_by(db, user.id)
    return {
        "user_id": user.id,
        "number_of_reports": counts["reports"],
        "number_of_votes": counts["votes"],
        "number_of_comments": counts["comments"],
        "trust_rate": user.trust_rate or 0.0,
        "votes": [
            {"type": v.polarity, "report_id": v.report_id, "created_at": v.created_at}
            for v in votes
        ],
    }


async def reports_by_category(db: AsyncSession, category: ReportCategory) -> List[Dict[str, Any]]:
    return await list_reports(db, ReportFilters(category=category))


async def reports_by_location(db: AsyncSession, latitude: float, longitude: float) -> List[Dict[str, Any]]:
    filters = ReportFilters(
        latitude=latitude, longitude=longitude, radius_km=config.STATS_LOCATION_RADIUS_KM
    )
    return await list_reports(db, filters)


async def popular_reports(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
    return await serialize_reports(db, await crud.popular_reports(db, limit))


async def city_ranking(db: AsyncSession, city: str, limit: int = 10) -> List[Dict[str, Any]]:
    """Habitants d'une ville classés par nombre de votes émis (1 = le plus actif)."""
    if not city or not city.strip():
        raise ValidationFailed("Le nom de la ville est requis.")

    rows = await crud.city_vote_ranking(db, city.strip())
    out = []
    for rank, (user, vote_count) in enumerate(rows[:limit], start=1):
        out.append({
            "ranking": rank,
            "id": user.id,
            "username": user.username,
            "display_name": user.display_name,
            "vote_count": vote_count,
            "trust_rate": user.trust_rate or 0.0,
        })
    return out
