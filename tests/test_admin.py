import pytest

from smartcities import config
from smartcities.models import Report, User


@pytest.fixture()
def admin_token(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "s3cret")
    return "s3cret"


def test_reset_user_requires_token(client, make_user, admin_token):
    uid = make_user()
    assert client.post("/admin/reset_user", json={"user_id": uid}).status_code == 401
    r = client.post("/admin/reset_user", json={"user_id": uid}, headers={"x-admin-token": "nope"})
    assert r.status_code == 401


def test_reset_user_without_token_outside_dev(client, make_user, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "")
    monkeypatch.setattr(config, "ENV", "prod")
    assert client.post("/admin/reset_user", json={"user_id": make_user()}).status_code == 401


def test_reset_user_purges_reports_and_refreshes_voters(
    client, make_user, make_report, add_vote, fetch, count_rows, admin_token
):
    spammer, voter, other = make_user(), make_user(), make_user()
    spam = [make_report(spammer) for _ in range(2)]
    legit = make_report(other)
    add_vote(spam[0], voter, "down")
    add_vote(legit, voter, "up")
    client.post("/reports/vote", json={"report_id": spam[1], "user_id": voter, "type": "down"})
    assert fetch(User, voter).trust_rate == -1.0

    r = client.post("/admin/reset_user", json={"user_id": spammer}, headers={"x-admin-token": admin_token})
    assert r.status_code == 200
    assert r.json()["deleted_reports"] == 2
    assert count_rows(Report, user_id=spammer) == 0
    assert fetch(Report, legit) is not None
    assert fetch(User, voter).trust_rate == 1.0


def test_reset_unknown_user(client, admin_token):
    r = client.post("/admin/reset_user", json={"user_id": 4040}, headers={"x-admin-token": admin_token})
    assert r.status_code == 404
