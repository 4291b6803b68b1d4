from harmony.sync.api import BackendClient
from harmony.sync.connection_service import ConnectionRequestService
from harmony.sync.connection_store import ConnectionStore
from harmony.sync.conversation_index import ConversationIndex
from harmony.sync.errors import (
    AlreadyConnected,
    InvalidTransition,
    NetworkFailure,
    NotAuthenticated,
    SyncError,
    ValidationFailure,
)
from harmony.sync.messaging import MessagingService
from harmony.sync.models import (
    ConnectionEdge,
    ConnectionStatus,
    ConversationSummary,
    EdgeRole,
    Message,
    Notice,
    OptimisticMessage,
)
from harmony.sync.scheduler import PeriodicTask, SyncScheduler
from harmony.sync.session import MessagingSession
from harmony.sync.thread_cache import MessageThread, MessageThreadCache

__all__ = [
    "AlreadyConnected",
    "BackendClient",
    "ConnectionEdge",
    "ConnectionRequestService",
    "ConnectionStatus",
    "ConnectionStore",
    "ConversationIndex",
    "ConversationSummary",
    "EdgeRole",
    "InvalidTransition",
    "Message",
    "MessageThread",
    "MessageThreadCache",
    "MessagingService",
    "MessagingSession",
    "NetworkFailure",
    "NotAuthenticated",
    "Notice",
    "OptimisticMessage",
    "PeriodicTask",
    "SyncError",
    "SyncScheduler",
    "ValidationFailure",
]
