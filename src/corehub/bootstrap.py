"""CoreHub: composition root wiring registry, pipeline, dispatch and adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .channels import DEFAULT_ORG_PREFIX, ChannelRegistry
from .config import InfrastructureConfig
from .dispatch.consumer import DispatchConsumer
from .dispatch.dispatcher import WebhookDispatcher
from .infrastructure.initializer import InfrastructureInitializer
from .infrastructure.reconciler import InfrastructureReconciler, ReconcileMode
from .publishing import PublishService
from .records import MessageStatus
from .retry import RetryPolicy
from .subscriptions import SubscriptionService

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from .channels import Channel
    from .config import CoreHubSettings
    from .ports.broker import IBrokerAdmin, IBrokerConsumer, IBrokerPublisher
    from .ports.stores import IMessageStore, ISubscriptionStore
    from .ports.webhook import IWebhookClient

logger = logging.getLogger("corehub.bootstrap")


class CoreHub:
    """
    Owns every long-lived component of a running hub.

    Build it with :meth:`create` from ports (tests use the in-memory
    adapters) or with :meth:`from_settings` for the aio-pika, SQLAlchemy and
    httpx adapters.

    ``start()`` declares static infrastructure, reconciles every registered
    channel and starts consuming; ``stop()`` reverses it.
    """

    def __init__(
        self,
        *,
        registry: ChannelRegistry,
        reconciler: InfrastructureReconciler,
        initializer: InfrastructureInitializer,
        publisher: PublishService,
        subscriptions: SubscriptionService,
        dispatcher: WebhookDispatcher,
        consumer: DispatchConsumer,
        on_startup: Iterable[Callable[[], Awaitable[Any]]] = (),
        on_shutdown: Iterable[Callable[[], Awaitable[Any]]] = (),
    ) -> None:
        self.registry = registry
        self.reconciler = reconciler
        self.initializer = initializer
        self.publisher = publisher
        self.subscriptions = subscriptions
        self.dispatcher = dispatcher
        self.consumer = consumer
        self._on_startup = list(on_startup)
        self._on_shutdown = list(on_shutdown)
        self._started = False

    @classmethod
    def create(
        cls,
        *,
        admin: IBrokerAdmin,
        broker_publisher: IBrokerPublisher,
        broker_consumer: IBrokerConsumer,
        message_store: IMessageStore,
        subscription_store: ISubscriptionStore,
        webhook_client: IWebhookClient,
        channels: Iterable[Channel] = (),
        org_prefix: str = DEFAULT_ORG_PREFIX,
        reconcile_mode: ReconcileMode | str = ReconcileMode.ENSURE,
        infrastructure: InfrastructureConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        max_concurrency: int = 16,
        on_startup: Iterable[Callable[[], Awaitable[Any]]] = (),
        on_shutdown: Iterable[Callable[[], Awaitable[Any]]] = (),
    ) -> CoreHub:
        registry = ChannelRegistry(channels)
        reconciler = InfrastructureReconciler(admin, registry, reconcile_mode)
        subscriptions = SubscriptionService(subscription_store)
        dispatcher = WebhookDispatcher(registry, subscriptions, webhook_client, retry_policy)
        return cls(
            registry=registry,
            reconciler=reconciler,
            initializer=InfrastructureInitializer(admin, infrastructure or InfrastructureConfig()),
            publisher=PublishService(
                registry, reconciler, broker_publisher, message_store, org_prefix=org_prefix
            ),
            subscriptions=subscriptions,
            dispatcher=dispatcher,
            consumer=DispatchConsumer(
                broker_consumer,
                registry,
                dispatcher,
                reconciler=reconciler,
                max_concurrency=max_concurrency,
            ),
            on_startup=on_startup,
            on_shutdown=on_shutdown,
        )

    @classmethod
    def from_settings(cls, settings: CoreHubSettings) -> CoreHub:
        """Wire the production adapters described by *settings*."""
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        from .dispatch.webhook import HttpxWebhookClient
        from .observability import configure_logging
        from .persistence import (
            SQLAlchemyMessageStore,
            SQLAlchemySubscriptionStore,
            create_schema,
        )
        from .rabbitmq import (
            RabbitMQAdmin,
            RabbitMQConnectionManager,
            RabbitMQConsumer,
            RabbitMQPublisher,
        )

        configure_logging(settings.logging.level, json_format=settings.logging.json_format)
        connection = RabbitMQConnectionManager(settings.broker.url)
        rabbit_consumer = RabbitMQConsumer(
            connection, prefetch_count=settings.broker.prefetch_count
        )
        engine = create_async_engine(settings.database_url)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        webhook_client = HttpxWebhookClient(
            connect_timeout=settings.webhook.connect_timeout,
            read_timeout=settings.webhook.read_timeout,
            user_agent=settings.webhook.user_agent,
        )

        async def open_resources() -> None:
            await create_schema(engine)
            await connection.connect()

        async def close_resources() -> None:
            await rabbit_consumer.close()
            await webhook_client.aclose()
            await connection.close()
            await engine.dispose()

        return cls.create(
            admin=RabbitMQAdmin(connection),
            broker_publisher=RabbitMQPublisher(connection),
            broker_consumer=rabbit_consumer,
            message_store=SQLAlchemyMessageStore(session_factory),
            subscription_store=SQLAlchemySubscriptionStore(session_factory),
            webhook_client=webhook_client,
            channels=settings.channels,
            org_prefix=settings.org_prefix,
            reconcile_mode=settings.reconcile_mode,
            infrastructure=settings.infrastructure,
            retry_policy=RetryPolicy(
                max_attempts=settings.webhook.max_attempts,
                base_delay=settings.webhook.backoff_step,
            ),
            max_concurrency=settings.dispatch.max_concurrency,
            on_startup=[open_resources],
            on_shutdown=[close_resources],
        )

    @property
    def started(self) -> bool:
        return self._started

    async def health(self) -> dict[str, Any]:
        """Broker liveness and message counts per status."""
        broker_ok = await self.publisher.publisher.health_check()
        messages = {
            status.value: await self.publisher.store.count_by_status(status)
            for status in MessageStatus
        }
        return {
            "status": "ok" if broker_ok and self._started else "degraded",
            "started": self._started,
            "broker": broker_ok,
            "messages": messages,
        }

    async def start(self) -> None:
        if self._started:
            return
        for hook in self._on_startup:
            await hook()
        await self.initializer.run()
        report = await self.reconciler.reconcile_all()
        if not report.is_complete:
            logger.warning(
                "Infrastructure not ready for channels: %s", ", ".join(report.failed_channels)
            )
        await self.consumer.start()
        self._started = True
        logger.info("CoreHub started with %d channel(s)", len(self.registry))

    async def stop(self) -> None:
        if not self._started:
            return
        await self.consumer.stop()
        for hook in self._on_shutdown:
            try:
                await hook()
            except Exception:  # noqa: BLE001
                logger.exception("Shutdown hook failed")
        self._started = False
        logger.info("CoreHub stopped")
