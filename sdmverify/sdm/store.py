"""SQLAlchemy-backed counter store, for replay protection that survives restarts."""

import logging
import threading
from contextlib import nullcontext
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import Column, DateTime, Integer, String, create_engine, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from sdmverify.errors import CounterStoreError

from .replay import CounterStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class ScanCounter(Base):
    """Highest accepted SDM read counter for one tag."""
    __tablename__ = "scan_counters"

    uid = Column(String(14), primary_key=True)               # upper-case UID hex
    last_counter = Column(Integer, nullable=False)
    first_seen_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite connections are shared across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One connection, otherwise every checkout sees a fresh empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


class SqlCounterStore(CounterStore):
    """
    Counter store in a relational database.

    The counter is raised with a conditional UPDATE (compare-and-swap in the
    database), so concurrent processes sharing the table cannot both accept
    the same counter. On a StaticPool engine (in-memory SQLite) all threads
    share one connection and therefore one transaction, so calls are
    serialized in-process instead.

    Database failures surface as CounterStoreError.
    """

    def __init__(self, db: Union[str, Engine] = "sqlite://"):
        self.engine = make_engine(db) if isinstance(db, str) else db
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(bind=self.engine)
        if isinstance(self.engine.pool, StaticPool):
            self._lock = threading.Lock()
        else:
            self._lock = nullcontext()

    def advance(self, uid: str, counter: int) -> bool:
        if counter <= 0:
            return False
        try:
            with self._lock:
                return self._advance(uid, counter)
        except SQLAlchemyError as e:
            raise CounterStoreError(f"Could not update read counter for UID {uid}: {e}") from e

    def _advance(self, uid: str, counter: int) -> bool:
        while True:
            with self._sessions() as db:
                stmt = (
                    update(ScanCounter)
                    .where(ScanCounter.uid == uid, ScanCounter.last_counter < counter)
                    .values(last_counter=counter, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if db.execute(stmt).rowcount:
                    db.commit()
                    return True

                if db.get(ScanCounter, uid) is not None:
                    return False

                db.add(ScanCounter(uid=uid, last_counter=counter))
                try:
                    db.commit()
                    return True
                except IntegrityError:
                    db.rollback()
                    logger.debug("Lost insert race for UID %s, retrying as update", uid)

    def get(self, uid: str) -> Optional[int]:
        try:
            with self._lock, self._sessions() as db:
                row = db.get(ScanCounter, uid)
                return row.last_counter if row else None
        except SQLAlchemyError as e:
            raise CounterStoreError(f"Could not read counter for UID {uid}: {e}") from e
