import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from starlette.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from smartcities import db
from smartcities.deps import get_mailer
from smartcities.main import app
from smartcities.models import Report, User, Vote

PARIS = (48.8566, 2.3522)
BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class StubMailer:
    def __init__(self):
        self.sent = []

    async def send(self, to, subject, text, html_part=None):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html_part})
        return {"Messages": [{"Status": "success"}]}

    async def aclose(self):
        pass


@pytest.fixture()
def database(tmp_path, monkeypatch):
    # une base SQLite fichier par test ; NullPool => pas de connexion partagée entre boucles
    engine = db.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", async_sessionmaker(bind=engine, expire_on_commit=False))
    asyncio.run(db.init_models())
    yield db
    asyncio.run(engine.dispose())


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def make_user(database):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        fields.setdefault("username", f"user{counter['n']}")

        async def _insert():
            async with database.SessionLocal() as s:
                user = User(**fields)
                s.add(user)
                await s.commit()
                return user.id

        return run(_insert())

    return _make


@pytest.fixture()
def make_report(database):
    counter = {"n": 0}

    def _make(user_id, lat=PARIS[0], lng=PARIS[1], city="Paris", category="danger", **fields):
        counter["n"] += 1
        fields.setdefault("title", f"Signalement {counter['n']}")
        fields.setdefault("description", "Trottoir défoncé")
        fields.setdefault("created_at", BASE_TIME + timedelta(minutes=counter["n"]))

        async def _insert():
            async with database.SessionLocal() as s:
                report = Report(
                    user_id=user_id, latitude=lat, longitude=lng, city=city, category=category,
                    up_vote_count=0, down_vote_count=0, **fields,
                )
                s.add(report)
                await s.commit()
                return report.id

        return run(_insert())

    return _make


@pytest.fixture()
def add_vote(database):
    """Vote posé directement en base (compteurs inclus)."""

    def _add(report_id, user_id, polarity):
        async def _insert():
            async with database.SessionLocal() as s:
                s.add(Vote(report_id=report_id, user_id=user_id, polarity=polarity))
                report = await s.get(Report, report_id)
                if polarity == "up":
                    report.up_vote_count += 1
                else:
                    report.down_vote_count += 1
                await s.commit()

        run(_insert())

    return _add


@pytest.fixture()
def fetch(database):
    """Lit une ligne ORM hors requête HTTP."""

    def _fetch(model, pk):
        async def _get():
            async with database.SessionLocal() as s:
                return await s.get(model, pk)

        return run(_get())

    return _fetch


@pytest.fixture()
def count_rows(database):
    def _count(model, **where):
        async def _q():
            async with database.SessionLocal() as s:
                q = select(func.count()).select_from(model)
                for k, v in where.items():
                    q = q.where(getattr(model, k) == v)
                return await s.scalar(q)

        return run(_q())

    return _count


@pytest.fixture()
def mailer():
    return StubMailer()


@pytest.fixture()
def client(database, mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
