from harmony.models.user import User
from harmony.models.connection import Connection
from harmony.models.message import Message

__all__ = ["User", "Connection", "Message"]
