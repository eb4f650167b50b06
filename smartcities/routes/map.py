# smartcities/routes/map.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import config, crud
from smartcities.db import get_db
from smartcities.schemas import ReportFilters
from smartcities.services.reports import list_reports

router = APIRouter(prefix="/map", tags=["map"])


@router.get("/reports")
async def map_reports(db: AsyncSession = Depends(get_db)):
    rows = await crud.all_report_markers(db)
    return [
        {
            "id": r.id,
            "title": r.title,
            "category": r.category,
            "city": r.city,
            "latitude": r.latitude,
            "longitude": r.longitude,
            "created_at": r.created_at,
        }
        for r in rows
    ]


@router.get("/nearby")
async def map_nearby(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
):
    filters = ReportFilters(
        latitude=latitude, longitude=longitude, radius_km=config.MAP_NEARBY_RADIUS_KM
    )
    items = await list_reports(db, filters)
    return [
        {
            "id": it["id"],
            "title": it["title"],
            "category": it["category"],
            "city": it["city"],
            "latitude": it["latitude"],
            "longitude": it["longitude"],
            "distance_km": round(it["distance_km"], 3),
            "up_votes": it["up_votes"],
            "down_votes": it["down_votes"],
        }
        for it in items
    ]
