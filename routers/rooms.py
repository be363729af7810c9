from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional

from backend import Room, RoomStore
from constants import ROOM_KEY_PREFIX
from schemas.rooms import ActivePresenter, ActivePresentersResponse, PresenterStatusResponse, RoomDetailsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_room_store(request: Request) -> RoomStore:
    return request.app.state.room_store


def room_key_for(room_id: str) -> str:
    """External identifier of a room: its id without the client's naming prefix."""
    if ROOM_KEY_PREFIX and room_id.startswith(ROOM_KEY_PREFIX):
        return room_id[len(ROOM_KEY_PREFIX):]
    return room_id


def find_room_by_key(room_store: RoomStore, room_key: str) -> Optional[Room]:
    room = room_store.get_room(f"{ROOM_KEY_PREFIX}{room_key}")
    if room is None:
        room = room_store.get_room(room_key)
    return room


@rooms_router.get("/presenters", response_model=ActivePresentersResponse)
async def list_active_presenters(room_store: RoomStore = Depends(get_room_store)):
    """
    Every room that currently has a presenter.

    Read-only projection for external "who is live" listings; polled, so it
    never touches room state.
    """
    presenters = []
    for room in room_store.rooms():
        presenter = room.presenter_user
        if presenter is None:
            continue
        presenters.append(ActivePresenter(
            roomKey=room_key_for(room.room_id),
            userId=room_key_for(room.room_id),
            username=presenter.username,
            viewerCount=room.viewer_count,
        ))
    logger.debug(f"Active presenters requested: {len(presenters)} live")
    return ActivePresentersResponse(presenters=presenters)


@rooms_router.get("/{room_key}/status", response_model=PresenterStatusResponse)
async def get_presenter_status(room_key: str, room_store: RoomStore = Depends(get_room_store)):
    room = find_room_by_key(room_store, room_key)
    if room is None or room.presenter_user is None:
        return PresenterStatusResponse(
            isPresenting=False,
            viewerCount=room.viewer_count if room else 0,
        )
    return PresenterStatusResponse(
        isPresenting=True,
        viewerCount=room.viewer_count,
        presenterName=room.presenter_user.username,
    )


@rooms_router.get("/{room_id}/details", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, room_store: RoomStore = Depends(get_room_store)):
    """
    Get room details including the member list.

    Returns:
    - room_id: Room identifier
    - presenter_id / presenter_name: Current presenter, if any
    - online_users_count: Number of joined members
    - viewer_count: Members other than the presenter
    - has_cached_offer: Whether late joiners will be handed an offer
    - online_users: Member list in join order
    """
    room = room_store.get_room(room_id)
    if room is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    presenter = room.presenter_user
    return RoomDetailsResponse(
        room_id=room.room_id,
        presenter_id=room.presenter,
        presenter_name=presenter.username if presenter else None,
        online_users_count=len(room.members),
        viewer_count=room.viewer_count,
        has_cached_offer=room.last_offer is not None,
        online_users=room_store.list_members(room_id),
    )
