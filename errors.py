class SignalingError(Exception):
    """Base class for errors raised by the signaling core."""


class UnknownRoom(SignalingError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} does not exist")
        self.room_id = room_id


class PresenterConflict(SignalingError):
    """Another member already presents in the room."""

    def __init__(self, room_id: str, presenter_id: str):
        super().__init__("Another user is already presenting in this room")
        self.room_id = room_id
        self.presenter_id = presenter_id


class MalformedMessage(SignalingError):
    """Inbound frame could not be turned into a client message."""


class UnknownMessageType(MalformedMessage):
    def __init__(self, message_type):
        super().__init__(f"Unknown message type: {message_type}")
        self.message_type = message_type


class NotAMember(SignalingError):
    def __init__(self, room_id: str, user_id: str):
        super().__init__(f"User {user_id} is not a member of room {room_id}")
        self.room_id = room_id
        self.user_id = user_id
