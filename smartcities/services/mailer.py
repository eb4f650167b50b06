# smartcities/services/mailer.py
"""
Client Mailjet (API v3.1) construit explicitement avec ses clés, puis injecté
dans les routes. Aucun état global au niveau du module.
"""
import html
import logging
from typing import Optional

import httpx

from smartcities.errors import MailDeliveryError

logger = logging.getLogger(__name__)

MAILJET_SEND_URL = "https://api.mailjet.com/v3.1/send"


class MailjetClient:
    def __init__(
        self,
        api_key: str,
        secret_key: str,
        sender_email: str,
        sender_name: str = "SmartCities Support",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.sender_email = sender_email
        self.sender_name = sender_name
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._auth = httpx.BasicAuth(api_key, secret_key)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, to: str, subject: str, text: str, html_part: Optional[str] = None) -> dict:
        payload = {
            "Messages": [
                {
                    "From": {"Email": self.sender_email, "Name": self.sender_name},
                    "To": [{"Email": to, "Name": "Administrateur"}],
                    "Subject": subject,
                    "TextPart": text,
                    "HTMLPart": html_part or f"<p>{html.escape(text)}</p>",
                }
            ]
        }
        try:
            r = await self._client.post(MAILJET_SEND_URL, json=payload, auth=self._auth)
        except httpx.HTTPError as e:
            logger.error("[mail] transport error to=%s: %s", to, e)
            raise MailDeliveryError("Échec de l'envoi de l'email.") from e

        if r.status_code not in (200, 201):
            logger.error("[mail] mailjet status=%s body=%s", r.status_code, r.text[:300])
            raise MailDeliveryError("Échec de l'envoi de l'email.")

        logger.info("[mail] sent to=%s subject=%r", to, subject)
        return r.json()


def flag_email_body(report_id: int, reporter_id: int, reason: str) -> tuple:
    text = f"Rapport signalé : {report_id}, Signalé par : {reporter_id}, Raison : {reason}"
    html_part = (
        "<h2>Détails du signalement :</h2>"
        "<p><strong>Type :</strong> Signalement inapproprié</p>"
        f"<p><strong>ID du signalement :</strong> {report_id}</p>"
        f"<p><strong>Signalé par l'utilisateur numéro :</strong> {reporter_id}</p>"
        f"<p><strong>Raison :</strong> {html.escape(reason)}</p>"
    )
    return text, html_part
