"""SQLAlchemy (async) persistence for corehub."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import Base, MessageLogModel, PayloadModel, SubscriptionModel
from .stores import SQLAlchemyMessageStore, SQLAlchemySubscriptionStore
from .types import JSONType, UTCDateTime

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def create_schema(engine: AsyncEngine) -> None:
    """Create all corehub tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "JSONType",
    "MessageLogModel",
    "PayloadModel",
    "SQLAlchemyMessageStore",
    "SQLAlchemySubscriptionStore",
    "SubscriptionModel",
    "UTCDateTime",
    "create_schema",
]
