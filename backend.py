from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from errors import NotAMember, PresenterConflict, UnknownRoom
from logging_config import get_logger
from registry import User

logger = get_logger(__name__)


@dataclass
class Room:
    room_id: str
    # user_id -> User, non-owning; the registry owns users
    members: Dict[str, User] = field(default_factory=dict)
    presenter: Optional[str] = None
    last_offer: Optional[Any] = None

    @property
    def presenter_user(self) -> Optional[User]:
        if self.presenter is None:
            return None
        return self.members.get(self.presenter)

    @property
    def viewer_count(self) -> int:
        return len(self.members) - (1 if self.presenter else 0)


class RoomStore:
    """In-memory rooms keyed by room id.

    A room exists only while it has members. The presenter always references
    a current member, and the cached offer never outlives the presenter.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def rooms(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def _require(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise UnknownRoom(room_id)
        return room

    def ensure_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self._rooms[room_id] = room
            logger.info(f"Room created: {room_id}")
        return room

    def add_member(self, room_id: str, user: User) -> Room:
        room = self.ensure_room(room_id)
        existing = room.members.get(user.user_id)
        if existing is not None and existing is not user:
            logger.debug(f"Overwriting member {user.user_id} in room {room_id}")
        room.members[user.user_id] = user
        user.room_id = room_id
        user.is_presenter = room.presenter == user.user_id
        logger.debug(f"Added {user.user_id} to room {room_id} (members: {len(room.members)})")
        return room

    def remove_member(self, room_id: str, user_id: str) -> bool:
        """Remove a member. Returns True when this deleted the (now empty) room."""
        room = self._rooms.get(room_id)
        if room is None:
            return False
        user = room.members.pop(user_id, None)
        if room.presenter == user_id:
            room.presenter = None
            room.last_offer = None
            if user is not None:
                user.is_presenter = False
        logger.debug(f"Removed {user_id} from room {room_id} (members: {len(room.members)})")
        if not room.members:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} deleted (empty)")
            return True
        return False

    def set_presenter(self, room_id: str, user_id: str) -> Room:
        room = self._require(room_id)
        user = room.members.get(user_id)
        if user is None:
            raise NotAMember(room_id, user_id)
        if room.presenter is not None and room.presenter != user_id:
            raise PresenterConflict(room_id, room.presenter)
        if room.presenter != user_id:
            room.last_offer = None
        room.presenter = user_id
        user.is_presenter = True
        return room

    def clear_presenter(self, room_id: str, user_id: str) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.presenter != user_id:
            return False
        room.presenter = None
        room.last_offer = None
        user = room.members.get(user_id)
        if user is not None:
            user.is_presenter = False
        return True

    def cache_offer(self, room_id: str, offer: Any) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.presenter is None:
            return False
        room.last_offer = offer
        return True

    def list_members(self, room_id: str) -> List[Dict[str, Any]]:
        room = self._rooms.get(room_id)
        if room is None:
            return []
        return [
            {
                "userId": user_id,
                "username": user.username,
                "isPresenter": user_id == room.presenter,
            }
            for user_id, user in room.members.items()
        ]
