# smartcities/deps.py: dépendances partagées par les routers
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import config
from smartcities.db import get_db
from smartcities.errors import Unauthorized
from smartcities.services.mailer import MailjetClient
from smartcities.services.notifications import NotificationService


def get_notifier(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_mailer(request: Request) -> MailjetClient:
    # construit une fois dans le lifespan (main.py)
    return request.app.state.mailer


def actor_id(x_user_id: Optional[int] = Header(None)) -> Optional[int]:
    """Identité posée par la couche d'authentification en amont."""
    return x_user_id


def is_admin(x_admin_token: Optional[str] = Header(None)) -> bool:
    expected = config.ADMIN_TOKEN
    return bool(expected) and bool(x_admin_token) and x_admin_token.strip() == expected


async def check_admin_token(x_admin_token: Optional[str] = Header(None)) -> bool:
    """
    Garde admin : compare l'en-tête x-admin-token à ADMIN_TOKEN.
    Sans token configuré, on n'exige rien en dev uniquement.
    """
    expected = config.ADMIN_TOKEN
    if not expected:
        if config.ENV == "dev":
            return True
        raise Unauthorized("Admin désactivé (ADMIN_TOKEN absent).")
    if not x_admin_token or x_admin_token.strip() != expected:
        raise Unauthorized("Invalid token")
    return True
