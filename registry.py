import asyncio
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class SendResult(str, Enum):
    SENT = "sent"
    UNKNOWN_CONNECTION = "unknown_connection"
    CLOSED = "closed"


@dataclass
class User:
    user_id: str
    username: str
    room_id: str
    is_presenter: bool = False


@dataclass
class Connection:
    id: str
    channel: Any
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    user: Optional[User] = None
    closed: bool = False


class ConnectionRegistry:
    """Live client connections keyed by connection id.

    The connection id doubles as the user id once the client joins a room.
    Sending only hands the encoded frame to the connection's outbox; a writer
    task owned by the websocket endpoint drains it to the transport.
    """

    def __init__(self):
        self.connections: Dict[str, Connection] = {}

    def register(self, channel) -> str:
        connection_id = uuid.uuid4().hex
        while connection_id in self.connections:
            connection_id = uuid.uuid4().hex
        self.connections[connection_id] = Connection(id=connection_id, channel=channel)
        logger.info(f"New connection: {connection_id} (total: {len(self.connections)})")
        return connection_id

    def unregister(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return None
        connection.closed = True
        logger.info(f"Connection closed: {connection_id} (remaining: {len(self.connections)})")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self.connections

    def __len__(self) -> int:
        return len(self.connections)

    def bind_user(self, connection_id: str, room_id: str, username: str) -> Optional[User]:
        """Attach a logical user to the connection, replacing any previous one."""
        connection = self.connections.get(connection_id)
        if connection is None:
            return None
        connection.user = User(user_id=connection_id, username=username, room_id=room_id)
        return connection.user

    def release_user(self, connection_id: str) -> Optional[User]:
        connection = self.connections.get(connection_id)
        if connection is None:
            return None
        user, connection.user = connection.user, None
        return user

    def get_user(self, connection_id: str) -> Optional[User]:
        connection = self.connections.get(connection_id)
        return connection.user if connection else None

    def send(self, connection_id: str, message: Dict[str, Any]) -> SendResult:
        """Best-effort delivery. Never raises; a failed send is simply dropped."""
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {message.get('type')} for unknown connection {connection_id}")
            return SendResult.UNKNOWN_CONNECTION
        if connection.closed:
            logger.debug(f"Dropping {message.get('type')} for closed connection {connection_id}")
            return SendResult.CLOSED
        connection.outbox.put_nowait(json.dumps(message))
        return SendResult.SENT

    async def close_all(self, code: int = 1001, reason: str = "Server shutting down"):
        """Close every open transport; used on application shutdown."""
        connections = list(self.connections.values())
        logger.info(f"Closing {len(connections)} open connections")
        for connection in connections:
            connection.closed = True
            try:
                await connection.channel.close(code=code, reason=reason)
            except Exception as e:
                logger.debug(f"Error closing connection {connection.id}: {e}")
