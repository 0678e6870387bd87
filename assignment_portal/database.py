import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from assignment_portal.core import config


logger = logging.getLogger(__name__)

_connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Models register their tables on Base when imported.
    from assignment_portal.models import assignment, submission, user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def close_db() -> None:
    engine.dispose()
    logger.info('Database engine disposed')
