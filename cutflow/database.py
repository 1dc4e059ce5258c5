import logging

from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from cutflow.config import settings

logger = logging.getLogger(__name__)


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # single shared connection so in-memory databases survive across sessions
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


engine = _build_engine(settings.database_url)


def create_db_and_tables():
    import cutflow.models  # noqa: F401  registers every table on the metadata
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session


PENDING_CALLBACKS = "cutflow_after_commit"


def run_after_commit(session: Session, callback, *args, **kwargs):
    """Defer ``callback`` until ``session`` commits; dropped on rollback."""
    session.info.setdefault(PENDING_CALLBACKS, []).append((callback, args, kwargs))


@event.listens_for(Session, "after_commit")
def _run_pending_callbacks(session):
    callbacks = session.info.pop(PENDING_CALLBACKS, [])

    for callback, args, kwargs in callbacks:
        try:
            callback(*args, **kwargs)
        except Exception:
            logger.exception("after-commit callback %r failed", callback)


@event.listens_for(Session, "after_rollback")
def _drop_pending_callbacks(session):
    session.info.pop(PENDING_CALLBACKS, None)
