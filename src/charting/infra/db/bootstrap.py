from __future__ import annotations

import logging
from typing import Optional

from src.charting.config import settings
from src.charting.infra.db import inmemory as store_registry
from src.charting.infra.db.session import create_sqlalchemy_session_factory
from src.charting.infra.db.sql_visits import SqlVisitNoteStore

logger = logging.getLogger("visits")


def init_sql_repositories(database_url: Optional[str] = None) -> bool:
    """Optionally switch the in-memory note store to the SQL-backed one.

    Intended to be called from an application bootstrap path. If
    USE_SQL_REPOS is not enabled or DATABASE_URL is not configured, this is a
    no-op and the in-memory store remains active. Returns True when the SQL
    store was installed.
    """

    if not settings.use_sql_repos and database_url is None:
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        # Misconfigured: requested SQL repos but no database URL. Leave the
        # in-memory store in place.
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory note store")
        return False

    session_factory = create_sqlalchemy_session_factory(db_url)
    store_registry.note_store = SqlVisitNoteStore(session_factory)
    return True
