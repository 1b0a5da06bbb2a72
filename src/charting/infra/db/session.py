from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

SessionFactory = Callable[[], Session]


def create_sqlalchemy_session_factory(database_url: str) -> SessionFactory:
    """Create a factory producing SQLAlchemy sessions bound to ``database_url``.

    The schema is created on first use if it does not exist yet. In a real
    deployment this should be handled by migrations, but it keeps local and
    test setups to a single environment variable.
    """

    from src.charting.infra.db.models import Base

    engine = create_engine(database_url, future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
