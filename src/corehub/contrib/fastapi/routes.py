"""HTTP routes for publishing, subscription management and channel inspection.

Example:
    ```python
    from fastapi import FastAPI
    from corehub.contrib.fastapi import build_router

    app = FastAPI()
    app.include_router(
        build_router(
            publisher=hub.publisher,
            subscriptions=hub.subscriptions,
            registry=hub.registry,
            reconciler=hub.reconciler,
            initializer=hub.initializer,
        )
    )
    ```
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Header, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ...correlation import CORRELATION_HEADER, set_correlation_id
from ...envelope import MessageEnvelope
from ...exceptions import NotFoundError, ValidationError
from ...records import SubscriptionStatus
from ...subscriptions import SubscriptionRequest

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ...channels import Channel, ChannelRegistry
    from ...infrastructure.initializer import InfrastructureInitializer
    from ...infrastructure.reconciler import InfrastructureReconciler
    from ...publishing import PublishService
    from ...records import Subscription
    from ...subscriptions import SubscriptionService

logger = logging.getLogger("corehub.http")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class SubscriptionResponse(_CamelModel):
    subscription_id: str
    webhook_url: str
    squad_name: str
    topic: str
    event_name: str
    status: SubscriptionStatus
    created_at: datetime
    updated_at: datetime
    failed_attempts: int
    last_error: str | None = None
    last_successful_delivery: datetime | None = None

    @classmethod
    def of(cls, s: Subscription) -> SubscriptionResponse:
        return cls(
            subscription_id=s.id,
            webhook_url=s.webhook_url,
            squad_name=s.squad_name,
            topic=s.topic,
            event_name=s.event_name,
            status=s.status,
            created_at=s.created_at,
            updated_at=s.updated_at,
            failed_attempts=s.failed_attempts,
            last_error=s.last_error,
            last_successful_delivery=s.last_successful_delivery,
        )


class SubscriptionEventSummary(_CamelModel):
    topic: str
    event_name: str
    squad_name: str
    webhook_url: str


class SubscriptionListResponse(_CamelModel):
    total_subscriptions: int
    active_subscriptions: int
    events: list[SubscriptionEventSummary]


class ChannelStatus(_CamelModel):
    channel: str
    exchange: str
    routing_key: str
    queue: str
    infrastructure_ready: bool


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _error(
    status_code: int, message: str, errors: dict[str, list[str]] | None = None
) -> JSONResponse:
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


def _pydantic_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "__root__"
        errors.setdefault(field, []).append(err["msg"])
    return errors


def build_router(
    *,
    publisher: PublishService,
    subscriptions: SubscriptionService,
    registry: ChannelRegistry,
    reconciler: InfrastructureReconciler,
    initializer: InfrastructureInitializer | None = None,
    health: Callable[[], Awaitable[dict[str, Any]]] | None = None,
) -> APIRouter:
    """Build the corehub API router around already-wired services.

    *health* is an async callable returning a report with a ``status`` key;
    when given, ``GET /health`` answers 200 for ``"ok"`` and 503 otherwise.
    """
    router = APIRouter()

    def channel_status(channel: Channel) -> ChannelStatus:
        return ChannelStatus(
            channel=channel.name,
            exchange=channel.exchange,
            routing_key=channel.routing_key,
            queue=channel.queue,
            infrastructure_ready=reconciler.is_ready(channel.name),
        )

    # ── Publish ──────────────────────────────────────────────────

    @router.post("/publish", status_code=status.HTTP_202_ACCEPTED, tags=["publish"])
    async def publish(
        request: Request,
        x_correlation_id: str | None = Header(default=None, alias=CORRELATION_HEADER),
    ) -> Any:
        set_correlation_id(x_correlation_id)
        try:
            envelope = MessageEnvelope.model_validate(await request.json())
        except PydanticValidationError as exc:
            return _error(400, "Invalid message envelope", _pydantic_errors(exc))
        except ValueError:
            return _error(400, "Request body must be JSON")
        try:
            entry = await publisher.publish(envelope, x_correlation_id)
        except NotFoundError as exc:
            logger.warning("Publish rejected for channel %s: %s", envelope.channel, exc)
            return _error(404, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("Publish of %s failed: %s", envelope.message_id, exc)
            return _error(500, "Failed to publish message")
        return {"status": "accepted", "messageId": entry.message_id}

    # ── Subscriptions ────────────────────────────────────────────

    @router.post("/subscribe", status_code=status.HTTP_201_CREATED, tags=["subscriptions"])
    async def subscribe(request: Request) -> Any:
        try:
            payload = SubscriptionRequest.model_validate(await request.json())
        except PydanticValidationError as exc:
            return _error(400, "Invalid subscription request", _pydantic_errors(exc))
        except ValueError:
            return _error(400, "Request body must be JSON")
        try:
            created = await subscriptions.create(payload)
        except ValidationError as exc:
            return _error(400, exc.message, exc.errors)
        return _dump(SubscriptionResponse.of(created))

    @router.get("/subscribe", tags=["subscriptions"])
    async def list_active() -> Any:
        return [_dump(SubscriptionResponse.of(s)) for s in await subscriptions.list_active()]

    @router.get("/subscribe/squad/{squad_name}", tags=["subscriptions"])
    async def list_by_squad(squad_name: str) -> Any:
        return [
            _dump(SubscriptionResponse.of(s)) for s in await subscriptions.list_by_squad(squad_name)
        ]

    @router.get("/subscribe/stats/squad/{squad_name}", tags=["subscriptions"])
    async def count_active_by_squad(squad_name: str) -> Any:
        count = await subscriptions.count_active_by_squad(squad_name)
        return {"squadName": squad_name, "activeSubscriptions": count}

    @router.get("/subscribe/{subscription_id}", tags=["subscriptions"])
    async def get_subscription(subscription_id: str) -> Any:
        found = await subscriptions.get(subscription_id)
        if found is None:
            return _error(404, f"Subscription not found: {subscription_id}")
        return _dump(SubscriptionResponse.of(found))

    @router.put("/subscribe/{subscription_id}/status", tags=["subscriptions"])
    async def update_status(
        subscription_id: str,
        new_status: SubscriptionStatus = Query(..., alias="status"),
    ) -> Any:
        try:
            updated = await subscriptions.update_status(subscription_id, new_status)
        except NotFoundError as exc:
            return _error(404, str(exc))
        return _dump(SubscriptionResponse.of(updated))

    @router.delete("/subscribe/{subscription_id}", tags=["subscriptions"])
    @router.delete("/unsubscribe/{subscription_id}", tags=["subscriptions"])
    async def delete_subscription(subscription_id: str) -> Any:
        try:
            await subscriptions.delete(subscription_id)
        except NotFoundError as exc:
            return _error(404, str(exc))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/subscriptions/list", tags=["subscriptions"])
    async def list_summary() -> Any:
        listing = await subscriptions.list_summary()
        response = SubscriptionListResponse(
            total_subscriptions=listing.total_subscriptions,
            active_subscriptions=listing.active_subscriptions,
            events=[
                SubscriptionEventSummary(
                    topic=e.topic,
                    event_name=e.event_name,
                    squad_name=e.squad_name,
                    webhook_url=e.webhook_url,
                )
                for e in listing.events
            ],
        )
        return _dump(response)

    # ── Channels ─────────────────────────────────────────────────

    @router.get("/channels", tags=["channels"])
    async def list_channels() -> Any:
        channels = registry.all()
        return {
            "totalChannels": len(channels),
            "channels": [_dump(channel_status(c)) for c in channels.values()],
        }

    @router.get("/channels/{channel_name}/status", tags=["channels"])
    async def get_channel_status(channel_name: str) -> Any:
        channel = registry.find(channel_name)
        if channel is None:
            return _error(404, f"Channel not found: {channel_name}")
        return _dump(channel_status(channel))

    @router.post("/channels/infrastructure/initialize", tags=["channels"])
    async def initialize_infrastructure() -> Any:
        body: dict[str, Any] = {}
        if initializer is not None:
            infra = await initializer.run()
            body["infrastructure"] = {
                "totalExchanges": infra.total_exchanges,
                "totalQueues": infra.total_queues,
                "totalBindings": infra.total_bindings,
                "createdExchanges": infra.created_exchanges,
                "createdQueues": infra.created_queues,
                "createdBindings": infra.created_bindings,
                "complete": infra.is_complete,
            }
        report = await reconciler.reconcile_all()
        body["channels"] = {
            "succeeded": report.succeeded,
            "total": report.total,
            "failed": list(report.failed_channels),
        }
        body["status"] = "success" if report.is_complete else "partial"
        return body

    @router.post("/channels/{channel_name}/infrastructure", tags=["channels"])
    async def create_channel_infrastructure(channel_name: str) -> Any:
        channel = registry.find(channel_name)
        if channel is None:
            return _error(404, f"Channel not found: {channel_name}")
        if not await reconciler.reconcile(channel):
            return _error(500, f"Failed to reconcile infrastructure for channel: {channel_name}")
        return {"status": "success", **_dump(channel_status(channel))}

    # ── Health ───────────────────────────────────────────────────

    if health is not None:

        @router.get("/health", tags=["health"])
        async def get_health() -> Any:
            report = await health()
            ok = report.get("status") == "ok"
            code = status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE
            return JSONResponse(status_code=code, content=report)

    return router
