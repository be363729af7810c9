import pytest

from errors import NotAMember, PresenterConflict, UnknownRoom
from registry import User


def make_user(user_id, username=None, room_id="r1"):
    return User(user_id=user_id, username=username or user_id.title(), room_id=room_id)


def test_ensure_room_is_lazy_and_stable(room_store):
    assert "r1" not in room_store
    room = room_store.ensure_room("r1")
    assert room_store.ensure_room("r1") is room
    assert room.members == {} and room.presenter is None


def test_list_members_in_join_order(room_store):
    room_store.add_member("r1", make_user("a", "Alice"))
    room_store.add_member("r1", make_user("b", "Bob"))

    assert room_store.list_members("r1") == [
        {"userId": "a", "username": "Alice", "isPresenter": False},
        {"userId": "b", "username": "Bob", "isPresenter": False},
    ]
    assert room_store.list_members("nowhere") == []


def test_add_member_is_idempotent_per_user(room_store):
    room_store.add_member("r1", make_user("a", "Alice"))
    room_store.add_member("r1", make_user("a", "Alicia"))

    assert room_store.list_members("r1") == [
        {"userId": "a", "username": "Alicia", "isPresenter": False},
    ]


def test_removing_last_member_deletes_room(room_store):
    room_store.add_member("r1", make_user("a"))
    room_store.add_member("r1", make_user("b"))

    assert room_store.remove_member("r1", "a") is False
    assert "r1" in room_store
    assert room_store.remove_member("r1", "b") is True
    assert "r1" not in room_store
    assert room_store.remove_member("r1", "b") is False


def test_single_presenter_per_room(room_store):
    alice, bob = make_user("a"), make_user("b")
    room_store.add_member("r1", alice)
    room_store.add_member("r1", bob)

    room_store.set_presenter("r1", "a")
    with pytest.raises(PresenterConflict) as excinfo:
        room_store.set_presenter("r1", "b")

    assert excinfo.value.presenter_id == "a"
    assert room_store.get_room("r1").presenter == "a"
    assert alice.is_presenter and not bob.is_presenter


def test_set_presenter_requires_membership(room_store):
    with pytest.raises(UnknownRoom):
        room_store.set_presenter("r1", "a")
    room_store.add_member("r1", make_user("a"))
    with pytest.raises(NotAMember):
        room_store.set_presenter("r1", "z")


def test_offer_cache_follows_presenter(room_store):
    room_store.add_member("r1", make_user("a"))
    room_store.add_member("r1", make_user("b"))

    assert room_store.cache_offer("r1", {"sdp": "x"}) is False
    room_store.set_presenter("r1", "a")
    assert room_store.cache_offer("r1", {"sdp": "1"}) is True
    assert room_store.cache_offer("r1", {"sdp": "2"}) is True
    assert room_store.get_room("r1").last_offer == {"sdp": "2"}

    # Re-asserting the same presenter keeps the offer
    room_store.set_presenter("r1", "a")
    assert room_store.get_room("r1").last_offer == {"sdp": "2"}

    assert room_store.clear_presenter("r1", "b") is False
    assert room_store.clear_presenter("r1", "a") is True
    room = room_store.get_room("r1")
    assert room.presenter is None and room.last_offer is None


def test_new_presenter_starts_without_stale_offer(room_store):
    room_store.add_member("r1", make_user("a"))
    room_store.add_member("r1", make_user("b"))
    room_store.set_presenter("r1", "a")
    room_store.cache_offer("r1", {"sdp": "old"})
    room_store.clear_presenter("r1", "a")

    room_store.set_presenter("r1", "b")
    assert room_store.get_room("r1").last_offer is None


def test_removing_presenter_clears_presenter_and_offer(room_store):
    alice = make_user("a")
    room_store.add_member("r1", alice)
    room_store.add_member("r1", make_user("b"))
    room_store.set_presenter("r1", "a")
    room_store.cache_offer("r1", {"sdp": "x"})

    room_store.remove_member("r1", "a")

    room = room_store.get_room("r1")
    assert room.presenter is None and room.last_offer is None
    assert not alice.is_presenter


def test_viewer_count_excludes_presenter(room_store):
    for user_id in "abc":
        room_store.add_member("r1", make_user(user_id))
    room = room_store.get_room("r1")
    assert room.viewer_count == 3
    room_store.set_presenter("r1", "a")
    assert room.viewer_count == 2
    assert room.presenter_user.user_id == "a"
