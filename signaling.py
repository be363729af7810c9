from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from backend import RoomStore
from errors import MalformedMessage, NotAMember, PresenterConflict, UnknownMessageType
from logging_config import get_logger
from registry import ConnectionRegistry, User
from schemas.messages import (
    AnswerMessage,
    ErrorMessage,
    IceCandidateMessage,
    JoinedMessage,
    JoinMessage,
    OfferMessage,
    PresenterStartedMessage,
    PresenterStoppedMessage,
    RelayMessage,
    StartPresentingMessage,
    StopPresentingMessage,
    UserJoinedMessage,
    UserLeftMessage,
    parse_client_message,
)

logger = get_logger(__name__)

Outbound = Union[BaseModel, Dict[str, Any]]


class SignalingRouter:
    """Routes client messages and runs the room/presenter lifecycle.

    Every handler is synchronous: state mutation and the queuing of the
    resulting notifications finish before the next message is looked at.
    """

    def __init__(self, registry: ConnectionRegistry, room_store: RoomStore):
        self.registry = registry
        self.room_store = room_store
        self._handlers = {
            JoinMessage: self.handle_join,
            StartPresentingMessage: self.handle_start_presenting,
            StopPresentingMessage: self.handle_stop_presenting,
            OfferMessage: self.handle_relay,
            AnswerMessage: self.handle_relay,
            IceCandidateMessage: self.handle_relay,
        }

    # ------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------

    def send(self, connection_id: str, message: Outbound):
        if isinstance(message, BaseModel):
            message = message.model_dump()
        # Best effort: a stale or closed target is a normal race, not a fault
        return self.registry.send(connection_id, message)

    def broadcast(self, room_id: str, message: Outbound, exclude: Optional[str] = None) -> int:
        """Send to every member of a room except `exclude`. Returns the number of recipients."""
        room = self.room_store.get_room(room_id)
        if room is None:
            return 0
        if isinstance(message, BaseModel):
            message = message.model_dump()
        recipients = [user_id for user_id in room.members if user_id != exclude]
        for user_id in recipients:
            self.registry.send(user_id, message)
        logger.debug(f"Broadcast {message.get('type')} to {len(recipients)} members of room {room_id}")
        return len(recipients)

    # ------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------

    def handle_frame(self, connection_id: str, data: Union[str, bytes]):
        try:
            message = parse_client_message(data)
        except UnknownMessageType as e:
            logger.warning(f"Ignoring message from {connection_id}: {e}")
            return
        except MalformedMessage as e:
            logger.warning(f"Dropping malformed message from {connection_id}: {e}")
            return
        self.dispatch(connection_id, message)

    def dispatch(self, connection_id: str, message: BaseModel):
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.warning(f"No handler for {type(message).__name__} from {connection_id}")
            return
        logger.debug(f"Message from {connection_id}: {getattr(message, 'type', None)}")
        handler(connection_id, message)

    # ------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------

    def handle_join(self, connection_id: str, message: JoinMessage):
        room_id = message.roomId
        username = message.username
        if not room_id or not room_id.strip() or not username or not username.strip():
            self.send(connection_id, ErrorMessage(message="Room ID and username are required"))
            return

        previous = self.registry.get_user(connection_id)
        if previous is not None:
            logger.info(f"User {connection_id} switching from room {previous.room_id} to {room_id}")
            self._leave_room(previous)

        user = self.registry.bind_user(connection_id, room_id, username)
        if user is None:
            logger.debug(f"Join from unregistered connection {connection_id} ignored")
            return
        room = self.room_store.add_member(room_id, user)
        logger.info(f"User {username} ({connection_id}) joined room {room_id}")

        users = self.room_store.list_members(room_id)
        self.send(connection_id, JoinedMessage(roomId=room_id, userId=connection_id, users=users))
        self.broadcast(
            room_id,
            UserJoinedMessage(userId=connection_id, username=username, users=users),
            exclude=connection_id,
        )

        presenter = room.presenter_user
        if presenter is None or presenter.user_id == connection_id:
            return
        self.send(
            connection_id,
            PresenterStartedMessage(presenterId=presenter.user_id, presenterName=presenter.username),
        )
        if room.last_offer is not None:
            # Late joiner negotiates straight away from the presenter's last offer
            self.send(
                connection_id,
                {"type": "offer", "offer": room.last_offer, "from": presenter.user_id},
            )

    def handle_start_presenting(self, connection_id: str, message: StartPresentingMessage):
        user = self._joined_user(connection_id, message.roomId)
        if user is None:
            return
        try:
            self.room_store.set_presenter(user.room_id, connection_id)
        except PresenterConflict as e:
            logger.info(f"User {user.username} refused as presenter in room {user.room_id}: {e.presenter_id} presents")
            self.send(connection_id, ErrorMessage(message=str(e)))
            return
        except NotAMember as e:
            logger.warning(f"Start presenting rejected: {e}")
            return

        logger.info(f"User {user.username} started presenting in room {user.room_id}")
        self.broadcast(
            user.room_id,
            PresenterStartedMessage(presenterId=connection_id, presenterName=user.username),
        )

    def handle_stop_presenting(self, connection_id: str, message: StopPresentingMessage):
        user = self._joined_user(connection_id, message.roomId)
        if user is None:
            return
        if not self.room_store.clear_presenter(user.room_id, connection_id):
            logger.debug(f"Stop presenting from non-presenter {connection_id} ignored")
            return
        logger.info(f"User {user.username} stopped presenting in room {user.room_id}")
        self.broadcast(user.room_id, PresenterStoppedMessage(presenterId=connection_id))

    def handle_relay(self, connection_id: str, message: RelayMessage):
        payload = message.relay_payload(connection_id)
        user = self.registry.get_user(connection_id)

        if isinstance(message, OfferMessage) and user is not None:
            room = self.room_store.get_room(user.room_id)
            if room is not None and room.presenter == connection_id:
                self.room_store.cache_offer(user.room_id, message.offer)

        if message.to:
            self.send(message.to, payload)
        elif isinstance(message, OfferMessage) and user is not None:
            self.broadcast(user.room_id, payload, exclude=connection_id)
        else:
            logger.debug(f"Dropping untargeted {payload['type']} from {connection_id}")

    def handle_disconnect(self, connection_id: str):
        user = self.registry.release_user(connection_id)
        if user is not None:
            logger.info(f"User {user.username} ({connection_id}) disconnected from room {user.room_id}")
            self._leave_room(user)
        self.registry.unregister(connection_id)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def _joined_user(self, connection_id: str, room_id: Optional[str]) -> Optional[User]:
        user = self.registry.get_user(connection_id)
        if user is None:
            logger.debug(f"Message from unjoined connection {connection_id} ignored")
            return None
        if room_id and room_id != user.room_id:
            logger.warning(f"User {connection_id} named room {room_id} but is in {user.room_id}")
            return None
        return user

    def _leave_room(self, user: User):
        room_id = user.room_id
        was_presenter = self.room_store.clear_presenter(room_id, user.user_id)
        if self.room_store.remove_member(room_id, user.user_id):
            return
        if was_presenter:
            self.broadcast(room_id, PresenterStoppedMessage(presenterId=user.user_id))
        self.broadcast(
            room_id,
            UserLeftMessage(
                userId=user.user_id,
                username=user.username,
                users=self.room_store.list_members(room_id),
            ),
        )
