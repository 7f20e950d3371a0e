"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from coachchat.activity.router import router as activity_router
from coachchat.chat.client import StreamChatClient
from coachchat.chat.conversation import ConversationHub, RedeliveryGuard
from coachchat.chat.router import router as chat_router
from coachchat.config import get_settings
from coachchat.database import close_db, get_session_factory, init_db
from coachchat.health.router import router as health_router
from coachchat.middleware import setup_middleware
from coachchat.notifications.dispatcher import DeliveryRouter
from coachchat.notifications.orchestrator import NotificationOrchestrator
from coachchat.notifications.push.expo import ExpoPushProvider
from coachchat.notifications.push.fcm import FCMWebPushProvider
from coachchat.notifications.router import router as notifications_router
from coachchat.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    web_provider = FCMWebPushProvider.from_settings(settings)
    if not web_provider.is_configured:
        logger.warning("fcm_not_configured", detail="web push tokens will fail with 503")

    router = DeliveryRouter(
        web_provider=web_provider,
        mobile_provider=ExpoPushProvider.from_settings(settings),
        timeout_seconds=settings.push_timeout_seconds,
    )
    app.state.orchestrator = NotificationOrchestrator(
        get_session_factory(),
        router,
        cooldown_minutes=settings.notification_cooldown_minutes,
        icon=settings.default_notification_icon,
    )
    app.state.conversation_hub = ConversationHub(
        app.state.orchestrator.handle_inbound_message_event,
        RedeliveryGuard(settings.chat_event_dedup_ttl_seconds),
    )
    app.state.chat_client = StreamChatClient.from_settings(settings)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CoachChat API",
        description="Coaching chat backend with activity-aware push notifications",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(notifications_router)
    app.include_router(activity_router)
    app.include_router(chat_router)

    return app


app = create_app()
