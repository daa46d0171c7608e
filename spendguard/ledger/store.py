"""
State Store Service — whole-record load and save of the proxy state.

Usage:
    store = StateStore(database_url)
    store.initialize()  # Create tables

    state = store.load()
    ...
    store.save(state)
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from spendguard.core.state import ProxyState
from spendguard.ledger.models import Base, ProxyStateDB

logger = logging.getLogger(__name__)

DEFAULT_SLOT = "state"


class StateStore:
    """Get/set of serialized `ProxyState` records keyed by slot."""

    def __init__(self, database_url: str) -> None:
        """
        Args:
            database_url: SQLAlchemy connection string (sync driver).
        """
        self.engine = create_engine(database_url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def initialize(self) -> None:
        Base.metadata.create_all(self.engine)

    def load(self, slot: str = DEFAULT_SLOT) -> ProxyState | None:
        """Return the stored state, or None if the slot was never written."""
        with self.SessionLocal() as session:
            row = session.execute(
                select(ProxyStateDB).where(ProxyStateDB.slot == slot)
            ).scalar_one_or_none()
            if row is None:
                return None
            return ProxyState.model_validate(row.content)

    def save(self, state: ProxyState, slot: str = DEFAULT_SLOT) -> None:
        """Replace the record in `slot` with `state`."""
        content = state.model_dump(mode="json")
        with self.SessionLocal() as session:
            row = session.get(ProxyStateDB, slot)
            if row is None:
                session.add(ProxyStateDB(slot=slot, content=content))
            else:
                row.content = content
            session.commit()
        logger.debug("State saved to slot %s", slot)

    def exists(self, slot: str = DEFAULT_SLOT) -> bool:
        with self.SessionLocal() as session:
            return session.get(ProxyStateDB, slot) is not None
