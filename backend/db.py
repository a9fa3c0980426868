from __future__ import annotations

import logging
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine

from backend.settings import get_settings

logger = logging.getLogger(__name__)

_ASYNC_DRIVER = "postgresql+asyncpg://"
_SYNC_PREFIXES = ("postgresql+psycopg2://", "postgresql://", "postgres://")
_LOCAL_HOSTS = {"localhost", "127.0.0.1"}


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _translate_ssl_query(url: str) -> str:
    """asyncpg understands ``ssl=true`` but not libpq's ``sslmode``."""
    parsed = urlparse(url)
    params = []
    wants_ssl = False
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        if key == "sslmode":
            wants_ssl = True
        elif key not in {"channel_binding", "ssl"}:
            params.append((key, value))
    if wants_ssl:
        params.append(("ssl", "true"))
    return urlunparse(parsed._replace(query=urlencode(params)))


def _normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    if not url or is_sqlite(url):
        return url
    for prefix in _SYNC_PREFIXES:
        if url.startswith(prefix):
            url = _ASYNC_DRIVER + url[len(prefix) :]
            break
    try:
        return _translate_ssl_query(url)
    except ValueError:
        logger.warning("Could not parse DATABASE_URL query; using it as given.")
        return url


def _engine_options(db_url: str) -> dict:
    if is_sqlite(db_url):
        return {"pool_pre_ping": True}
    options: dict = {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 10}
    host = urlparse(db_url).hostname or ""
    if host and host not in _LOCAL_HOSTS:
        options["connect_args"] = {"ssl": True}
    return options


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        db_url = _normalize_database_url(get_settings().database_url)
        _engine = create_async_engine(db_url, **_engine_options(db_url))
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
