from pydantic import BaseModel
from typing import Optional

from schemas.messages import MemberInfo


class PresenterStatusResponse(BaseModel):
    isPresenting: bool
    viewerCount: int
    presenterName: Optional[str] = None

class ActivePresenter(BaseModel):
    roomKey: str
    userId: str
    username: str
    viewerCount: int

class ActivePresentersResponse(BaseModel):
    success: bool = True
    presenters: list[ActivePresenter]

class RoomDetailsResponse(BaseModel):
    room_id: str
    presenter_id: Optional[str]
    presenter_name: Optional[str]
    online_users_count: int
    viewer_count: int
    has_cached_offer: bool
    online_users: list[MemberInfo]

class IceServer(BaseModel):
    urls: str

class ClientConfigResponse(BaseModel):
    iceServers: list[IceServer]
