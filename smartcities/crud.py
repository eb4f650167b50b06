# smartcities/crud.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from smartcities.models import (
    Comment,
    Notification,
    NotificationSubscription,
    Photo,
    Report,
    User,
    Vote,
)
from smartcities.schemas import ReportFilters
from smartcities.services.geo import BoundingBox

# =========================
#  Utilisateurs
# =========================

async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def set_user_position_if_missing(db: AsyncSession, user: User, lat: float, lng: float) -> None:
    if user.latitude is None or user.longitude is None:
        user.latitude = lat
        user.longitude = lng


async def user_activity_counts(db: AsyncSession, user_id: int) -> Dict[str, int]:
    n_reports = await db.scalar(select(func.count(Report.id)).where(Report.user_id == user_id))
    n_votes = await db.scalar(select(func.count(Vote.id)).where(Vote.user_id == user_id))
    n_comments = await db.scalar(select(func.count(Comment.id)).where(Comment.user_id == user_id))
    return {"reports": n_reports or 0, "votes": n_votes or 0, "comments": n_comments or 0}


async def votes_cast_by(db: AsyncSession, user_id: int) -> List[Vote]:
    res = await db.execute(
        select(Vote).where(Vote.user_id == user_id).order_by(Vote.created_at.desc(), Vote.id.desc())
    )
    return list(res.scalars().all())


async def city_vote_ranking(db: AsyncSession, city: str) -> List[Any]:
    """(user, nb de votes émis) pour les habitants d'une ville, du plus actif au moins actif."""
    n_votes = func.count(Vote.id).label("vote_count")
    q = (
        select(User, n_votes)
        .outerjoin(Vote, Vote.user_id == User.id)
        .where(User.city == city)
        .group_by(User.id)
        .order_by(n_votes.desc(), User.id.asc())
    )
    res = await db.execute(q)
    return list(res.all())

# =========================
#  Reports : lecture
# =========================

def _report_conditions(filters: ReportFilters, box: Optional[BoundingBox]) -> list:
    conds = []
    if filters.city:
        conds.append(Report.city == filters.city)
    if filters.category:
        conds.append(Report.category == filters.category.value)
    if filters.user_id is not None:
        conds.append(Report.user_id == filters.user_id)
    if filters.date_from is not None:
        conds.append(Report.created_at >= filters.date_from)
    if filters.date_to is not None:
        conds.append(Report.created_at <= filters.date_to)
    if box is not None:
        conds.append(Report.latitude.between(box.min_lat, box.max_lat))
        if box.min_lng is not None and box.max_lng is not None:
            conds.append(Report.longitude.between(box.min_lng, box.max_lng))
    return conds


async def find_reports(
    db: AsyncSession, filters: ReportFilters, box: Optional[BoundingBox] = None
) -> List[Report]:
    """Candidats (votes + photos attachés), ordre de lecture stable par id."""
    q = (
        select(Report)
        .where(*_report_conditions(filters, box))
        .options(selectinload(Report.votes), selectinload(Report.photos))
        .order_by(Report.id.asc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_report(db: AsyncSession, report_id: int, *, with_children: bool = False) -> Optional[Report]:
    if not with_children:
        return await db.get(Report, report_id)
    q = (
        select(Report)
        .where(Report.id == report_id)
        .options(
            selectinload(Report.votes),
            selectinload(Report.photos),
            selectinload(Report.user),
        )
    )
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def all_report_markers(db: AsyncSession) -> List[Any]:
    q = select(
        Report.id, Report.title, Report.category, Report.city, Report.latitude, Report.longitude,
        Report.created_at,
    ).order_by(Report.created_at.desc(), Report.id.desc())
    res = await db.execute(q)
    return list(res.all())


async def category_counts(db: AsyncSession, city_contains: str) -> List[Any]:
    pattern = f"%{city_contains.lower()}%"
    q = (
        select(Report.category, func.count(Report.id).label("count"))
        .where(func.lower(Report.city).like(pattern))
        .group_by(Report.category)
        .order_by(Report.category.asc())
    )
    res = await db.execute(q)
    return list(res.all())


async def popular_reports(db: AsyncSession, limit: int = 5) -> List[Report]:
    total = Report.up_vote_count + Report.down_vote_count
    q = (
        select(Report)
        .options(selectinload(Report.votes), selectinload(Report.photos))
        .order_by(total.desc(), Report.id.asc())
        .limit(limit)
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def report_ids_of_user(db: AsyncSession, user_id: int) -> List[int]:
    res = await db.execute(select(Report.id).where(Report.user_id == user_id))
    return list(res.scalars().all())

# =========================
#  Reports : écriture
# =========================

async def insert_report(
    db: AsyncSession,
    *,
    title: str,
    description: str,
    user_id: int,
    category: str,
    city: str,
    lat: float,
    lng: float,
    photo_urls: Sequence[str] = (),
) -> Report:
    report = Report(
        title=title,
        description=description,
        user_id=user_id,
        category=category,
        city=city,
        latitude=lat,
        longitude=lng,
        up_vote_count=0,
        down_vote_count=0,
    )
    report.photos = [Photo(url=u) for u in photo_urls]
    db.add(report)
    await db.flush()
    return report


async def delete_report_row(db: AsyncSession, report_id: int) -> None:
    # votes / commentaires / photos : ON DELETE CASCADE
    await db.execute(delete(Report).where(Report.id == report_id))

# =========================
#  Votes
# =========================

async def find_vote(db: AsyncSession, report_id: int, user_id: int) -> Optional[Vote]:
    res = await db.execute(
        select(Vote).where(Vote.report_id == report_id, Vote.user_id == user_id).limit(1)
    )
    return res.scalar_one_or_none()


async def insert_vote(db: AsyncSession, report_id: int, user_id: int, polarity: str) -> Vote:
    """Insère le vote (flush → IntegrityError si doublon) puis incrémente le compteur."""
    vote = Vote(report_id=report_id, user_id=user_id, polarity=polarity)
    db.add(vote)
    await db.flush()

    column = Report.up_vote_count if polarity == "up" else Report.down_vote_count
    await db.execute(
        update(Report).where(Report.id == report_id).values({column: column + 1})
    )
    return vote


async def vote_counts(db: AsyncSession, report_id: int) -> Dict[str, int]:
    res = await db.execute(
        select(Report.up_vote_count, Report.down_vote_count).where(Report.id == report_id)
    )
    row = res.one()
    return {"up_votes": row.up_vote_count, "down_votes": row.down_vote_count}


async def voter_ids_for_reports(db: AsyncSession, report_ids: Sequence[int]) -> List[int]:
    if not report_ids:
        return []
    res = await db.execute(select(Vote.user_id).where(Vote.report_id.in_(report_ids)).distinct())
    return list(res.scalars().all())

# =========================
#  Commentaires
# =========================

async def get_comment(db: AsyncSession, comment_id: int) -> Optional[Comment]:
    return await db.get(Comment, comment_id)


async def insert_comment(
    db: AsyncSession, *, report_id: int, user_id: int, text: str, parent_id: Optional[int]
) -> Comment:
    comment = Comment(report_id=report_id, user_id=user_id, text=text, parent_id=parent_id)
    db.add(comment)
    await db.flush()
    return comment


async def comments_for_report(db: AsyncSession, report_id: int) -> List[Comment]:
    q = (
        select(Comment)
        .where(Comment.report_id == report_id)
        .options(selectinload(Comment.user))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def delete_comment_row(db: AsyncSession, comment_id: int) -> None:
    await db.execute(delete(Comment).where(Comment.id == comment_id))

# =========================
#  Notifications
# =========================

async def insert_notification(
    db: AsyncSession,
    *,
    user_id: int,
    message: str,
    type_: str,
    related_id: Any,
    initiator_id: Optional[int] = None,
) -> Notification:
    notif = Notification(
        user_id=user_id,
        message=message,
        type=type_,
        related_id=str(related_id),
        initiator_id=initiator_id,
        is_read=False,
    )
    db.add(notif)
    await db.flush()
    return notif


async def subscriptions_for_region(
    db: AsyncSession, city: Optional[str], box: Optional[BoundingBox]
) -> List[NotificationSubscription]:
    """Abonnements de la ville OU dont la position tombe dans la boîte."""
    alternatives = []
    if city:
        alternatives.append(NotificationSubscription.city == city)
    if box is not None:
        conds = [NotificationSubscription.latitude.between(box.min_lat, box.max_lat)]
        if box.min_lng is not None and box.max_lng is not None:
            conds.append(NotificationSubscription.longitude.between(box.min_lng, box.max_lng))
        else:
            conds.append(NotificationSubscription.longitude.is_not(None))
        alternatives.append(conds[0] & conds[1])
    if not alternatives:
        return []
    q = (
        select(NotificationSubscription)
        .where(or_(*alternatives))
        .order_by(NotificationSubscription.id.asc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def insert_subscription(db: AsyncSession, **fields) -> NotificationSubscription:
    sub = NotificationSubscription(**fields)
    db.add(sub)
    await db.flush()
    return sub


async def subscriptions_of_user(db: AsyncSession, user_id: int) -> List[NotificationSubscription]:
    res = await db.execute(
        select(NotificationSubscription)
        .where(NotificationSubscription.user_id == user_id)
        .order_by(NotificationSubscription.created_at.desc(), NotificationSubscription.id.desc())
    )
    return list(res.scalars().all())
