# studiobook/database.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # Sessions are handed across worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,  # Number of persistent connections
        "max_overflow": 10,  # Maximum overflow connections
        "pool_timeout": 30,  # Timeout for getting connection
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Test connections before using
    }


def build_engine(url: str) -> Engine:
    new_engine = create_engine(url, **_engine_kwargs(url))

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        logger.debug("Database connection established")

    return new_engine


def build_session_factory(url: Optional[str] = None) -> sessionmaker:
    """Session factory bound to ``url``, DATABASE_URL by default."""
    return sessionmaker(
        bind=build_engine(url or settings.database_url),
        autoflush=False,
        expire_on_commit=False,
    )


Base = declarative_base()
