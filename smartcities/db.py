# smartcities/db.py: engine async (asyncpg en prod, aiosqlite en dev/tests)
import socket
import ssl
from urllib.parse import urlparse

import asyncpg
import certifi
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from smartcities.config import DATABASE_URL, DB_FORCE_IPV4


class Base(DeclarativeBase):
    pass


# Résolution IPv4 (A record)
def resolve_ipv4(host, port):
    for fam, _, _, _, sockaddr in socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_STREAM):
        return sockaddr[0]
    return host  # fallback (laisser asyncpg gérer)


def _ssl_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.load_verify_locations(certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def build_engine(url: str, force_ipv4: bool = False):
    """Engine async. Pour postgresql+asyncpg + force_ipv4 : connecteur IPv4 + SSL."""
    url = url.split("?")[0] if url.startswith("postgresql") else url

    if url.startswith("postgresql+asyncpg://") and force_ipv4:
        parsed = urlparse(url.replace("postgresql+asyncpg://", "postgresql://"))
        port = parsed.port or 5432
        ipv4 = resolve_ipv4(parsed.hostname, port)
        ssl_ctx = _ssl_context()

        async def _asyncpg_connect():
            return await asyncpg.connect(
                host=ipv4,
                port=port,
                user=parsed.username,
                password=parsed.password,
                database=parsed.path.lstrip("/") or "postgres",
                ssl=ssl_ctx,
                timeout=10.0,
            )

        return create_async_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            async_creator=_asyncpg_connect,   # 🔑 impose notre connecteur (IPv4 + SSL)
        )

    if url.startswith("sqlite"):
        # une connexion aiosqlite par session : pas d'état partagé entre boucles
        eng = create_async_engine(url, poolclass=NullPool)

        # ON DELETE CASCADE n'est appliqué par SQLite qu'avec foreign_keys=ON
        @event.listens_for(eng.sync_engine, "connect")
        def _sqlite_fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return eng

    return create_async_engine(url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL, force_ipv4=DB_FORCE_IPV4)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def init_models() -> None:
    # import local : enregistre les tables sur Base.metadata
    from smartcities import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        yield session
