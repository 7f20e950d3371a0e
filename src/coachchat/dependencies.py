"""Shared FastAPI dependencies.

Long-lived services (orchestrator, chat client, conversation hub) are built
once in the app lifespan and stored on ``app.state``.
"""

from fastapi import Request

from coachchat.chat.client import BaseChatTransport
from coachchat.chat.conversation import ConversationHub
from coachchat.notifications.orchestrator import NotificationOrchestrator


def get_orchestrator(request: Request) -> NotificationOrchestrator:
    return request.app.state.orchestrator


def get_chat_client(request: Request) -> BaseChatTransport:
    return request.app.state.chat_client


def get_conversation_hub(request: Request) -> ConversationHub:
    return request.app.state.conversation_hub
