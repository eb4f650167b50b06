# smartcities/routes/reports.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities.db import get_db
from smartcities.deps import actor_id, get_mailer, get_notifier, is_admin
from smartcities.errors import ValidationFailed
from smartcities.schemas import (
    CommentIn,
    FlagIn,
    ReportCategory,
    ReportFilters,
    ReportIn,
    ReportUpdate,
    VoteIn,
)
from smartcities.services import reports as svc
from smartcities.services.mailer import MailjetClient
from smartcities.services.notifications import NotificationService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", status_code=201)
async def create_report(
    payload: ReportIn,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await svc.create_report(db, notifier, payload)


@router.get("")
async def list_reports(
    city: Optional[str] = Query(None),
    category: Optional[ReportCategory] = Query(None),
    user_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    radius_km: Optional[float] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        filters = ReportFilters(
            city=city,
            category=category,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
        )
    except ValidationError as e:
        raise ValidationFailed(f"Filtres invalides : {e.errors()[0]['msg']}") from e
    return await svc.list_reports(db, filters)


# --- chemins fixes avant /{report_id} ---

@router.get("/categories")
async def list_categories():
    return svc.list_categories()


@router.get("/statistics")
async def statistics(city: Optional[str] = Query(None), db: AsyncSession = Depends(get_db)):
    return await svc.statistics_by_category(db, city)


@router.post("/vote")
async def vote(
    payload: VoteIn,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await svc.vote_on_report(db, notifier, payload)


@router.post("/comment", status_code=201)
async def comment(
    payload: CommentIn,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await svc.comment_on_report(db, notifier, payload)


@router.delete("/comment/{comment_id}")
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[int] = Depends(actor_id),
):
    return await svc.delete_comment(db, comment_id, user_id)


# --- /{report_id} ---

@router.get("/{report_id}")
async def get_report(
    report_id: int,
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
):
    return await svc.get_report_detail(db, report_id, latitude, longitude)


@router.put("/{report_id}")
async def update_report(
    report_id: int,
    payload: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[int] = Depends(actor_id),
    admin: bool = Depends(is_admin),
):
    return await svc.update_report(db, report_id, user_id, admin, payload)


@router.delete("/{report_id}")
async def delete_report(
    report_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[int] = Depends(actor_id),
    admin: bool = Depends(is_admin),
):
    return await svc.delete_report(db, report_id, user_id, admin)


@router.get("/{report_id}/comments")
async def list_comments(report_id: int, db: AsyncSession = Depends(get_db)):
    return await svc.list_comments(db, report_id)


@router.post("/{report_id}/flag")
async def flag_report(
    report_id: int,
    payload: FlagIn,
    db: AsyncSession = Depends(get_db),
    mailer: MailjetClient = Depends(get_mailer),
):
    return await svc.flag_report(db, mailer, report_id, payload.reporter_id, payload.reason)
