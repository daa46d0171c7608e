"""
State Store — SQLAlchemy model for the proxy's single state record.

The engine treats storage as get/set of one serialized record under a fixed
slot. There are no partial updates: every save replaces the whole record.
"""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for state store models."""
    pass


class ProxyStateDB(Base):
    """One serialized `ProxyState`, keyed by slot."""

    __tablename__ = "proxy_state"

    slot = Column(String(64), primary_key=True, comment="Fixed storage key")
    content = Column(
        JSON, nullable=False,
        comment="Owner, permissioned addresses, rules, pool registry and fee debt",
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False,
        default=func.now(), onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ProxyState slot={self.slot} updated_at={self.updated_at}>"
