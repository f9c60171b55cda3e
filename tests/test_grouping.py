"""Tests for group_messages."""
from chatsync.models.models import Message, UNKNOWN_USER
from chatsync.services.grouping import group_messages

from conftest import T0, make_message


def shape(groups):
    return [(g.author_id, [m.id for m in g.messages]) for g in groups]


def test_empty_list_has_no_groups():
    assert group_messages([]) == []


def test_author_change_and_time_gap_split_groups():
    messages = [
        make_message("m1", "A", seconds=0),
        make_message("m2", "A", seconds=10),
        make_message("m3", "B", seconds=20),
        make_message("m4", "A", seconds=400),
    ]

    groups = group_messages(messages)

    assert shape(groups) == [("A", ["m1", "m2"]), ("B", ["m3"]), ("A", ["m4"])]


def test_same_author_after_long_gap_starts_new_group():
    messages = [make_message("m1", "A", seconds=0), make_message("m2", "A", seconds=400)]

    assert shape(group_messages(messages)) == [("A", ["m1"]), ("A", ["m2"])]


def test_gap_of_exactly_five_minutes_starts_new_group():
    messages = [
        make_message("m1", "A", seconds=0),
        make_message("m2", "A", seconds=299.999),
        make_message("m3", "A", seconds=599.999),
    ]

    assert shape(group_messages(messages)) == [("A", ["m1", "m2"]), ("A", ["m3"])]


def test_custom_window():
    messages = [make_message("m1", "A", seconds=0), make_message("m2", "A", seconds=30)]

    assert len(group_messages(messages, window_ms=10_000)) == 2
    assert len(group_messages(messages, window_ms=60_000)) == 1


def test_display_name_from_profile_or_unknown():
    anonymous = Message(id="m2", content="hi", created_at=T0, author_id="B", room_id="room-1")
    groups = group_messages([make_message("m1", "A", username="alice"), anonymous])

    assert [g.display_name for g in groups] == ["alice", UNKNOWN_USER]


def test_recomputation_is_value_equal():
    messages = [make_message(f"m{i}", "A" if i % 3 else "B", seconds=i * 60) for i in range(10)]

    assert group_messages(messages) == group_messages(list(messages))
