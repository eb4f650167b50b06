import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from smartcities.models import User
from smartcities.services.trust import (
    compute_trust_rate,
    refresh_trust_rate,
    trust_rate_from_polarities,
    trust_rates_for_users,
)


@pytest.mark.parametrize(
    "polarities, expected",
    [
        ([], 0.0),
        (["up", "up", "up", "down"], 2 / 3),
        (["up"], 1.0),
        (["down", "down"], 0.0),
        (["up", "down"], 0.0),
        (["up", "down", "down"], -1.0),
    ],
)
def test_policy(polarities, expected):
    assert trust_rate_from_polarities(polarities) == pytest.approx(expected)


def test_rate_uses_votes_cast_not_received(database, make_user, make_report, add_vote, fetch):
    author = make_user()
    voter = make_user()
    reports = [make_report(author) for _ in range(4)]
    for rid, polarity in zip(reports, ["up", "up", "up", "down"]):
        add_vote(rid, voter, polarity)

    async def _rates():
        async with database.SessionLocal() as s:
            a = await compute_trust_rate(s, author)
            v = await refresh_trust_rate(s, voter)
            batch = await trust_rates_for_users(s, [author, voter])
            await s.commit()
            return a, v, batch

    a, v, batch = asyncio.run(_rates())
    assert a == 0.0
    assert v == pytest.approx(2 / 3)
    assert batch == {author: 0.0, voter: pytest.approx(2 / 3)}
    assert fetch(User, voter).trust_rate == pytest.approx(2 / 3)


class _BrokenSession:
    """Session dont chaque lecture échoue côté base."""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT votes", {}, Exception("disk I/O error"))


def test_storage_errors_propagate():
    with pytest.raises(OperationalError):
        asyncio.run(compute_trust_rate(_BrokenSession(), 1))
    with pytest.raises(OperationalError):
        asyncio.run(trust_rates_for_users(_BrokenSession(), [1, 2]))
