# smartcities/services/reports.py
"""
Signalements : création, classement par proximité, votes, commentaires.

Pipeline de liste :
  filtres → boîte (pré-filtre SQL) → distance exacte + rayon → votes
  → taux de confiance de l'auteur → tri.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import config, crud
from smartcities.errors import Conflict, Forbidden, NotFound, ValidationFailed
from smartcities.models import Comment, Report
from smartcities.schemas import (
    CATEGORY_ICONS,
    CommentIn,
    ReportCategory,
    ReportFilters,
    ReportIn,
    ReportUpdate,
    VoteIn,
)
from smartcities.services.geo import Coordinate, bounding_box, haversine_km, is_within_radius
from smartcities.services.mailer import MailjetClient, flag_email_body
from smartcities.services.notifications import NotificationService
from smartcities.services.trust import refresh_trust_rate, trust_rates_for_users

logger = logging.getLogger(__name__)


def _tally(report: Report) -> Dict[str, int]:
    up = sum(1 for v in report.votes if v.polarity == "up")
    return {"up_votes": up, "down_votes": len(report.votes) - up}


def serialize_report(report: Report, distance_km: Optional[float], trust_rate: float) -> Dict[str, Any]:
    """Forme publique d'un signalement (votes et photos doivent être chargés)."""
    return {
        "id": report.id,
        "title": report.title,
        "description": report.description,
        "user_id": report.user_id,
        "city": report.city,
        "category": report.category,
        "latitude": report.latitude,
        "longitude": report.longitude,
        "created_at": report.created_at,
        "photos": [p.url for p in report.photos],
        **_tally(report),
        "distance_km": distance_km,
        "trust_rate": trust_rate,
    }


async def serialize_reports(db: AsyncSession, reports: Iterable[Report]) -> List[Dict[str, Any]]:
    reports = list(reports)
    rates = await trust_rates_for_users(db, (r.user_id for r in reports))
    return [serialize_report(r, None, rates.get(r.user_id, 0.0)) for r in reports]


def _center(latitude: Optional[float], longitude: Optional[float]) -> Optional[Coordinate]:
    if latitude is None or longitude is None:
        return None
    return Coordinate(latitude, longitude)


def _can_edit(report: Report, actor_id: Optional[int], is_admin: bool) -> None:
    if is_admin:
        return
    if actor_id is None or report.user_id != actor_id:
        raise Forbidden("Seul l'auteur du signalement peut le modifier.")

# =========================
#  Classement
# =========================

async def list_reports(db: AsyncSession, filters: ReportFilters) -> List[Dict[str, Any]]:
    center = _center(filters.latitude, filters.longitude)
    radius_km = filters.radius_km

    box = bounding_box(center, radius_km)
    candidates = await crud.find_reports(db, filters, box)

    rows = []
    for report in candidates:
        distance = None
        if center is not None:
            distance = haversine_km(center, Coordinate(report.latitude, report.longitude))
            # la boîte laisse passer les coins : rayon exact ici (sans rayon : tout est gardé)
            if box is not None and distance > radius_km:
                continue
        rows.append((report, distance))

    rates = await trust_rates_for_users(db, (r.user_id for r, _ in rows))

    if center is not None:
        rows.sort(key=lambda item: (item[1], item[0].id))
    else:
        rows.sort(key=lambda item: (item[0].created_at, item[0].id), reverse=True)

    logger.debug(
        "[reports] list center=%s radius=%s candidates=%d kept=%d",
        center, radius_km, len(candidates), len(rows),
    )
    return [serialize_report(r, d, rates.get(r.user_id, 0.0)) for r, d in rows]

# =========================
#  Signalements
# =========================

async def create_report(db: AsyncSession, notifier: NotificationService, payload: ReportIn) -> Dict[str, Any]:
    user = await crud.get_user(db, payload.user_id)
    if user is None:
        raise NotFound("Utilisateur introuvable.")

    await crud.set_user_position_if_missing(db, user, payload.latitude, payload.longitude)
    report = await crud.insert_report(
        db,
        title=payload.title,
        description=payload.description,
        user_id=user.id,
        category=payload.category.value,
        city=payload.city,
        lat=payload.latitude,
        lng=payload.longitude,
        photo_urls=payload.photo_urls,
    )
    await db.commit()
    logger.info("[reports] created id=%s user=%s city=%s", report.id, user.id, report.city)

    try:
        await notifier.notify_region(report)
        await db.commit()
    except SQLAlchemyError:
        # le signalement est déjà enregistré
        logger.exception("[reports] region notification failed for report=%s", report.id)
        await db.rollback()

    return {
        "id": report.id,
        "title": report.title,
        "description": report.description,
        "user_id": report.user_id,
        "city": report.city,
        "category": report.category,
        "latitude": report.latitude,
        "longitude": report.longitude,
        "created_at": report.created_at,
        "photos": list(payload.photo_urls),
        "up_votes": 0,
        "down_votes": 0,
    }


def _comment_tree(comments: List[Comment]) -> List[Dict[str, Any]]:
    nodes: Dict[int, Dict[str, Any]] = {}
    roots = []
    for c in comments:
        nodes[c.id] = {
            "id": c.id,
            "user_id": c.user_id,
            "author": c.user.display_name if c.user else None,
            "text": c.text,
            "parent_id": c.parent_id,
            "created_at": c.created_at,
            "replies": [],
        }
    for c in comments:
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is not None:
            parent["replies"].append(nodes[c.id])
        else:
            roots.append(nodes[c.id])
    return roots


async def get_report_detail(
    db: AsyncSession,
    report_id: int,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Dict[str, Any]:
    report = await crud.get_report(db, report_id, with_children=True)
    if report is None:
        raise NotFound("Signalement introuvable.")

    distance = None
    center = _center(latitude, longitude)
    if center is not None:
        distance = haversine_km(center, Coordinate(report.latitude, report.longitude))
        # moins d'un mètre : même endroit
        if distance < 0.001:
            distance = 0.0

    rates = await trust_rates_for_users(db, [report.user_id])
    out = serialize_report(report, distance, rates.get(report.user_id, 0.0))
    out["updated_at"] = report.updated_at
    out["author"] = {"id": report.user.id, "display_name": report.user.display_name}
    out["comments"] = _comment_tree(await crud.comments_for_report(db, report.id))
    return out


async def update_report(
    db: AsyncSession,
    report_id: int,
    actor_id: Optional[int],
    is_admin: bool,
    payload: ReportUpdate,
) -> Dict[str, Any]:
    report = await crud.get_report(db, report_id, with_children=True)
    if report is None:
        raise NotFound("Signalement introuvable.")
    _can_edit(report, actor_id, is_admin)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category") is not None:
        changes["category"] = ReportCategory(changes["category"]).value
    for field, value in changes.items():
        if value is None:
            continue
        setattr(report, field, value)
    await db.commit()
    logger.info("[reports] updated id=%s fields=%s", report.id, sorted(changes))

    rates = await trust_rates_for_users(db, [report.user_id])
    return serialize_report(report, None, rates.get(report.user_id, 0.0))


async def purge_reports(db: AsyncSession, report_ids: List[int]) -> List[int]:
    """
    Supprime les signalements (votes, commentaires et photos en cascade) puis
    recalcule le taux de confiance de chaque votant touché. Pas de commit.
    """
    voters = await crud.voter_ids_for_reports(db, report_ids)
    for rid in report_ids:
        await crud.delete_report_row(db, rid)
    for uid in voters:
        await refresh_trust_rate(db, uid)
    return voters


async def delete_report(db: AsyncSession, report_id: int, actor_id: Optional[int], is_admin: bool) -> Dict[str, Any]:
    report = await crud.get_report(db, report_id)
    if report is None:
        raise NotFound("Signalement introuvable.")
    _can_edit(report, actor_id, is_admin)

    voters = await purge_reports(db, [report.id])
    await db.commit()
    logger.info("[reports] deleted id=%s voters_refreshed=%d", report_id, len(voters))
    return {"message": "Signalement supprimé.", "id": report_id}

# =========================
#  Votes
# =========================

async def vote_on_report(db: AsyncSession, notifier: NotificationService, payload: VoteIn) -> Dict[str, Any]:
    report = await crud.get_report(db, payload.report_id)
    if report is None:
        raise NotFound("Signalement introuvable.")
    voter = await crud.get_user(db, payload.user_id)
    if voter is None:
        raise NotFound("Utilisateur introuvable.")

    # indicatif : la contrainte unique tranche en cas de course
    if await crud.find_vote(db, report.id, voter.id) is not None:
        raise Conflict("Vous avez déjà voté pour ce signalement.")

    try:
        await crud.insert_vote(db, report.id, voter.id, payload.type.value)
    except IntegrityError:
        await db.rollback()
        raise Conflict("Vous avez déjà voté pour ce signalement.")

    await refresh_trust_rate(db, voter.id)
    if payload.latitude is not None and payload.longitude is not None:
        voter.latitude = payload.latitude
        voter.longitude = payload.longitude
    counts = await crud.vote_counts(db, report.id)
    await db.commit()
    logger.info("[reports] vote report=%s user=%s type=%s", report.id, voter.id, payload.type.value)

    if report.user_id != voter.id:
        try:
            await notifier.create_notification(
                report.user_id,
                f"{voter.display_name} a voté sur votre signalement : {report.title}",
                "VOTE",
                report.id,
                initiator_id=voter.id,
            )
            await db.commit()
        except SQLAlchemyError:
            logger.exception("[reports] vote notification failed for report=%s", report.id)
            await db.rollback()

    return {"message": "Vote enregistré avec succès.", "updated_votes": counts}

# =========================
#  Commentaires
# =========================

async def comment_on_report(db: AsyncSession, notifier: NotificationService, payload: CommentIn) -> Dict[str, Any]:
    report = await crud.get_report(db, payload.report_id)
    if report is None:
        raise NotFound("Signalement introuvable.")
    user = await crud.get_user(db, payload.user_id)
    if user is None:
        raise NotFound("Utilisateur introuvable.")

    if payload.parent_id is not None:
        parent = await crud.get_comment(db, payload.parent_id)
        if parent is None or parent.report_id != report.id:
            raise NotFound("Commentaire parent introuvable.")

    actor = _center(payload.latitude, payload.longitude) or _center(user.latitude, user.longitude)
    target = Coordinate(report.latitude, report.longitude)
    if not is_within_radius(actor, target, config.COMMENT_RADIUS_M):
        raise Forbidden(
            f"Vous devez être à moins de {config.COMMENT_RADIUS_M:g} mètres du signalement pour commenter."
        )

    if payload.latitude is not None and payload.longitude is not None:
        user.latitude = payload.latitude
        user.longitude = payload.longitude
    comment = await crud.insert_comment(
        db, report_id=report.id, user_id=user.id, text=payload.text, parent_id=payload.parent_id
    )
    await db.commit()
    logger.info("[reports] comment id=%s report=%s user=%s", comment.id, report.id, user.id)

    if report.user_id != user.id:
        try:
            await notifier.create_notification(
                report.user_id,
                f"{user.display_name} a commenté votre signalement : {report.title}",
                "COMMENT",
                report.id,
                initiator_id=user.id,
            )
            await db.commit()
        except SQLAlchemyError:
            logger.exception("[reports] comment notification failed for report=%s", report.id)
            await db.rollback()

    return {
        "id": comment.id,
        "report_id": comment.report_id,
        "user_id": comment.user_id,
        "author": user.display_name,
        "parent_id": comment.parent_id,
        "text": comment.text,
        "created_at": comment.created_at,
    }


async def delete_comment(db: AsyncSession, comment_id: int, actor_id: Optional[int]) -> Dict[str, Any]:
    comment = await crud.get_comment(db, comment_id)
    if comment is None:
        raise NotFound("Commentaire introuvable.")
    if actor_id is None or comment.user_id != actor_id:
        raise Forbidden("Vous ne pouvez supprimer que vos propres commentaires.")
    # réponses : ON DELETE CASCADE
    await crud.delete_comment_row(db, comment.id)
    await db.commit()
    return {"message": "Commentaire supprimé.", "id": comment_id}


async def list_comments(db: AsyncSession, report_id: int) -> List[Dict[str, Any]]:
    if await crud.get_report(db, report_id) is None:
        raise NotFound("Signalement introuvable.")
    return _comment_tree(await crud.comments_for_report(db, report_id))

# =========================
#  Catégories, statistiques, modération
# =========================

def list_categories() -> List[Dict[str, str]]:
    return [{"value": c.value, "icon": CATEGORY_ICONS[c]} for c in ReportCategory]


async def statistics_by_category(db: AsyncSession, city: Optional[str]) -> List[Dict[str, Any]]:
    if not city or not city.strip():
        raise ValidationFailed("Le paramètre 'city' est requis.")
    rows = await crud.category_counts(db, city.strip())
    return [{"label": category, "count": count} for category, count in rows]


async def flag_report(
    db: AsyncSession, mailer: MailjetClient, report_id: int, reporter_id: int, reason: str
) -> Dict[str, str]:
    if await crud.get_report(db, report_id) is None:
        raise NotFound("Signalement introuvable.")
    if await crud.get_user(db, reporter_id) is None:
        raise NotFound("Utilisateur introuvable.")

    text, html_part = flag_email_body(report_id, reporter_id, reason)
    await mailer.send(config.MODERATION_EMAIL, "Signalement inapproprié", text, html_part)
    logger.info("[reports] flagged report=%s by user=%s", report_id, reporter_id)
    return {"message": "Signalement transmis à la modération."}
