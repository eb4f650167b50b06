# smartcities/services/trust.py
"""
Taux de confiance d'un utilisateur, calculé à partir des votes qu'il a ÉMIS
(pas des votes reçus sur ses signalements).

Toujours un recalcul complet sur l'ensemble des votes : pas de cache, pas de
mise à jour incrémentale. Une erreur de lecture remonte telle quelle.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities.models import User, Vote

logger = logging.getLogger(__name__)


def trust_rate_from_polarities(polarities: Iterable[str]) -> float:
    """
    up : +1 au numérateur et +1 au dénominateur.
    down : -1 au numérateur seulement (le dénominateur ne compte que les "up").
    """
    score = 0
    valid = 0
    for polarity in polarities:
        if polarity == "up":
            score += 1
            valid += 1
        elif polarity == "down":
            score -= 1
    return score / valid if valid > 0 else 0.0


async def compute_trust_rate(db: AsyncSession, user_id: int) -> float:
    res = await db.execute(select(Vote.polarity).where(Vote.user_id == user_id))
    return trust_rate_from_polarities(res.scalars().all())


async def trust_rates_for_users(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, float]:
    ids = set(user_ids)
    if not ids:
        return {}
    res = await db.execute(select(Vote.user_id, Vote.polarity).where(Vote.user_id.in_(ids)))
    by_user = defaultdict(list)
    for uid, polarity in res.all():
        by_user[uid].append(polarity)
    return {uid: trust_rate_from_polarities(by_user.get(uid, ())) for uid in ids}


async def refresh_trust_rate(db: AsyncSession, user_id: int) -> float:
    """Recalcule et stocke le taux sur l'utilisateur (sans commit)."""
    rate = await compute_trust_rate(db, user_id)
    await db.execute(update(User).where(User.id == user_id).values(trust_rate=rate))
    logger.debug("[trust] user=%s trust_rate=%.4f", user_id, rate)
    return rate
