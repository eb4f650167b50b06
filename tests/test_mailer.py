import asyncio
import json

import httpx
import pytest

from smartcities.errors import MailDeliveryError
from smartcities.services.mailer import MAILJET_SEND_URL, MailjetClient, flag_email_body


def _client(handler):
    return MailjetClient(
        "key", "secret", "noreply@smartcities.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_send_posts_v31_payload():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"Messages": [{"Status": "success"}]})

    mailer = _client(handler)
    text, html_part = flag_email_body(7, 3, "Spam <b>")
    out = asyncio.run(mailer.send("mod@smartcities.test", "Signalement inapproprié", text, html_part))

    assert out["Messages"][0]["Status"] == "success"
    assert seen["url"] == MAILJET_SEND_URL
    assert seen["auth"].startswith("Basic ")
    message = seen["body"]["Messages"][0]
    assert message["From"]["Email"] == "noreply@smartcities.test"
    assert message["To"][0]["Email"] == "mod@smartcities.test"
    assert "Spam &lt;b&gt;" in message["HTMLPart"]


def test_provider_error_raises():
    mailer = _client(lambda request: httpx.Response(401, json={"ErrorMessage": "bad key"}))
    with pytest.raises(MailDeliveryError):
        asyncio.run(mailer.send("mod@smartcities.test", "s", "t"))


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(MailDeliveryError):
        asyncio.run(_client(handler).send("mod@smartcities.test", "s", "t"))


def test_flag_route_maps_delivery_error_to_502(client, make_user, make_report, mailer, monkeypatch):
    async def _fail(*args, **kwargs):
        raise MailDeliveryError("Échec de l'envoi de l'email.")

    monkeypatch.setattr(mailer, "send", _fail)
    uid = make_user()
    rid = make_report(uid)
    r = client.post(f"/reports/{rid}/flag", json={"reporter_id": uid, "reason": "spam"})
    assert r.status_code == 502
