# smartcities/routes/stats.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities.db import get_db
from smartcities.schemas import ReportCategory
from smartcities.services import stats as svc

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/user/{user_id}")
async def user_stats(user_id: int, db: AsyncSession = Depends(get_db)):
    return await svc.user_stats(db, user_id)


@router.get("/reports-by-type/{category}")
async def reports_by_type(category: ReportCategory, db: AsyncSession = Depends(get_db)):
    return await svc.reports_by_category(db, category)


@router.get("/report-by-location")
async def report_by_location(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
):
    return await svc.reports_by_location(db, latitude, longitude)


@router.get("/popular-reports")
async def popular_reports(limit: int = Query(5, ge=1, le=50), db: AsyncSession = Depends(get_db)):
    return await svc.popular_reports(db, limit)


@router.get("/ranking")
async def ranking(city: Optional[str] = Query(None), db: AsyncSession = Depends(get_db)):
    return await svc.city_ranking(db, city)
