"""FastAPI integration for corehub (optional extra: corehub[fastapi])."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from .routes import (
    ChannelStatus,
    SubscriptionListResponse,
    SubscriptionResponse,
    build_router,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ...bootstrap import CoreHub


def create_app(hub: CoreHub, *, manage_lifecycle: bool = True) -> FastAPI:
    """FastAPI app serving *hub*; starts and stops it with the app lifespan."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await hub.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await hub.stop()

    app = FastAPI(title="CoreHub", lifespan=lifespan)
    app.include_router(
        build_router(
            publisher=hub.publisher,
            subscriptions=hub.subscriptions,
            registry=hub.registry,
            reconciler=hub.reconciler,
            initializer=hub.initializer,
            health=hub.health,
        )
    )
    return app


__all__: list[str] = [
    "ChannelStatus",
    "SubscriptionListResponse",
    "SubscriptionResponse",
    "build_router",
    "create_app",
]
