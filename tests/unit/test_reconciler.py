from __future__ import annotations

import uuid

import pytest

from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.services.reconciler import ConversationState, MessageReconciler
from chat_sync.services.subscriptions import RoomSubscriptionManager
from tests.conftest import ManualClock, make_message


@pytest.fixture
def subscriptions(transport):
    return RoomSubscriptionManager(transport)


@pytest.fixture
def clock():
    return ManualClock()


def _open(chat_id, transport, subscriptions, clock, *, join=True, seed=()):
    if join:
        subscriptions.join(chat_id)
    state = ConversationState(
        reference=GroupConversation(chat_id=chat_id, name=f"group {chat_id}"),
        subscriptions=subscriptions,
    )
    reconciler = MessageReconciler(state, transport, clock=clock, dedup_window=2.0)
    reconciler.attach()
    if seed is not None:
        reconciler.seed(list(seed))
    return reconciler


def _live(transport, chat_id, text, **fields):
    transport.deliver(
        TransportEvent.RECEIVE_MESSAGE,
        {"chatId": chat_id, "senderId": fields.pop("senderId", 2), "text": text, **fields},
    )


def test_snapshot_then_live_ordering(transport, subscriptions, clock):
    snapshot = [make_message("1", t) for t in ("s1", "s2", "s3")]
    reconciler = _open("1", transport, subscriptions, clock, seed=snapshot)

    _live(transport, "1", "l1")
    _live(transport, "1", "l2")

    assert [m.text for m in reconciler.state.messages] == ["s1", "s2", "s3", "l1", "l2"]


def test_routing_isolation_between_conversations(transport, subscriptions, clock):
    a = _open("1", transport, subscriptions, clock)
    b = _open("2", transport, subscriptions, clock)

    _live(transport, 2, "for b")

    assert a.state.messages == []
    assert [m.text for m in b.state.messages] == ["for b"]


def test_numeric_event_id_matches_string_chat_id(transport, subscriptions, clock):
    reconciler = _open("42", transport, subscriptions, clock)

    _live(transport, 42, "numeric")

    assert [m.text for m in reconciler.state.messages] == ["numeric"]


def test_events_dropped_while_not_subscribed(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock, join=False)

    _live(transport, "1", "ignored")

    assert reconciler.state.subscribed is False
    assert reconciler.state.messages == []


def test_detach_stops_updates(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock)
    reconciler.detach()

    _live(transport, "1", "late")

    assert reconciler.state.messages == []
    assert transport.handler_count(TransportEvent.RECEIVE_MESSAGE) == 0


def test_duplicate_server_id_is_ignored(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock, seed=[make_message("1", "a", message_id="m1")])

    _live(transport, "1", "a", id="m1")
    _live(transport, "1", "b", id="m2")

    assert [m.message_id for m in reconciler.state.messages] == ["m1", "m2"]


def test_duplicate_client_msg_id_is_ignored(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock)
    client_id = str(uuid.uuid4())

    _live(transport, "1", "once", clientMsgId=client_id)
    _live(transport, "1", "once", clientMsgId=client_id)

    assert len(reconciler.state.messages) == 1


def test_sequence_numbers_order_late_arrivals(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock)

    _live(transport, "1", "first", seq=1)
    _live(transport, "1", "third", seq=3)
    _live(transport, "1", "second", seq=2)
    _live(transport, "1", "third again", seq=3)

    assert [m.text for m in reconciler.state.messages] == ["first", "second", "third"]


def test_anonymous_redelivery_within_window_is_collapsed(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock)

    _live(transport, "1", "hi")
    clock.advance(0.5)
    _live(transport, "1", "hi")
    clock.advance(5)
    _live(transport, "1", "hi")

    assert [m.text for m in reconciler.state.messages] == ["hi", "hi"]


def test_events_before_seed_are_merged_after_snapshot(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock, seed=None)

    _live(transport, "1", "s2", senderId=2)
    _live(transport, "1", "live", senderId=3)
    assert reconciler.state.messages == []

    reconciler.seed([make_message("1", "s1"), make_message("1", "s2", sender_id="2")])

    assert [m.text for m in reconciler.state.messages] == ["s1", "s2", "live"]


def test_listener_notified_on_seed_and_append(transport, subscriptions, clock):
    reconciler = _open("1", transport, subscriptions, clock, seed=None)
    sizes: list[int] = []
    reconciler.add_listener(lambda state: sizes.append(len(state.messages)))

    reconciler.seed([make_message("1", "s1")])
    _live(transport, "1", "l1")

    assert sizes == [1, 2]
