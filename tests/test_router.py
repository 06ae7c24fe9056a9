from __future__ import annotations

import pytest

from conftest import FakeClock, FakeMessenger, FakeRosterSource
from steward.domain.account import Account
from steward.domain.inactivity import DAY_SECONDS, InactivityEngine
from steward.domain.onboarding import SETUP_COMPLETED_PAYLOAD, OnboardingEngine
from steward.domain.router import EventRouter
from steward.domain.welcome import WelcomeFlow
from steward.errors import TransientNetworkError
from steward.graph.roster import RosterClient


@pytest.fixture
def roster_source() -> FakeRosterSource:
    return FakeRosterSource.single_page(Account("U1", "Una User"))


@pytest.fixture
def event_router(ledger, messenger, roster_source) -> EventRouter:
    clock = FakeClock(1000 + 31 * DAY_SECONDS)
    return EventRouter(
        ledger=ledger,
        onboarding=OnboardingEngine(messenger),
        inactivity=InactivityEngine(RosterClient(roster_source), ledger, messenger, ["ADMIN"], clock=clock),
        welcome=WelcomeFlow(messenger, "Robotics Club", ["Read the handbook."]),
        admin_ids=["ADMIN"],
        inactivity_command="check inactivity",
        clock=clock,
    )


def page_event(sender: str, *, text: str | None = None, postback: str | None = None) -> dict:
    event: dict = {"sender": {"id": sender}, "recipient": {"id": "PAGE"}, "timestamp": 1}
    if text is not None:
        event["message"] = {"mid": "m1", "text": text}
    if postback is not None:
        event["postback"] = {"payload": postback, "title": "I'm done!"}
    return {"object": "page", "entry": [{"id": "PAGE", "time": 1, "messaging": [event]}]}


def change_event(obj: str, field: str, value: dict, *, time: int = 1000, entry_id: str = "G1") -> dict:
    return {"object": obj, "entry": [{"id": entry_id, "time": time, "changes": [{"field": field, "value": value}]}]}


def test_message_from_member_with_incomplete_profile_gets_one_prompt(event_router, messenger):
    messenger.add_profile("U1", cover=None, picture_is_silhouette=True)

    event_router.dispatch(page_event("U1", text="hi"))

    assert len(messenger.prompts) == 1
    prompt = messenger.prompts[0]
    assert prompt.account_id == "U1"
    assert "a cover photo and a profile picture :(" in prompt.text
    assert "department" not in prompt.text
    assert prompt.payload == SETUP_COMPLETED_PAYLOAD


def test_setup_postback_rechecks_profile(event_router, messenger):
    messenger.add_profile("U1")

    event_router.dispatch(page_event("U1", postback=SETUP_COMPLETED_PAYLOAD))

    assert messenger.prompts == []
    assert messenger.texts_to("U1") == ["Thanks Ada, your profile is all set!"]


def test_unknown_postback_is_dropped(event_router, messenger):
    messenger.add_profile("U1")
    event_router.dispatch(page_event("U1", postback="SOMETHING_ELSE"))
    assert messenger.profile_fetches == 0


def test_admin_command_triggers_inactivity_check(event_router, ledger, messenger, roster_source):
    ledger.record_activity("U1", 1000)

    event_router.dispatch(page_event("ADMIN", text="  Check Inactivity "))

    assert roster_source.calls == [None, "C1"]
    assert ledger.lookup("U1").warning_sent is True
    assert len(messenger.texts_to("ADMIN")) == 1


def test_admin_chatter_does_not_trigger_check(event_router, messenger, roster_source):
    messenger.add_profile("ADMIN")

    event_router.dispatch(page_event("ADMIN", text="hello there"))

    assert roster_source.calls == []
    assert messenger.texts_to("ADMIN") == ["Thanks Ada, your profile is all set!"]


def test_login_records_activity_at_entry_time(event_router, ledger):
    ledger.record_activity("U1", 10)
    ledger.mark_warned("U1", 10)

    event_router.dispatch(
        change_event("workplace_security", "sessions", {"event": "LOGIN", "target_id": "U1"}, time=1000)
    )

    record = ledger.lookup("U1")
    assert (record.last_activity, record.warning_sent) == (1000, False)


def test_logout_is_not_activity(event_router, ledger):
    event_router.dispatch(change_event("workplace_security", "sessions", {"event": "LOGOUT", "target_id": "U1"}))
    assert ledger.lookup("U1") is None


def test_account_activation_sends_welcome_sequence(event_router, messenger):
    messenger.add_profile("NEW", name="Grace Hopper")

    event_router.dispatch(
        change_event("workplace_security", "admin_activity", {"event": "ADMIN_ACTIVATE_ACCOUNT", "target_id": "NEW"})
    )

    assert messenger.texts_to("NEW") == ["Hello Grace, welcome to Robotics Club :)", "Read the handbook."]
    assert [p.payload for p in messenger.prompts] == [SETUP_COMPLETED_PAYLOAD]


def test_group_post_records_author_activity(event_router, ledger):
    event_router.dispatch(
        change_event("group", "posts", {"from": {"id": 42, "name": "Poster"}, "post_id": "p1"}, time=5000)
    )

    assert ledger.lookup("42").last_activity == 5000


def test_user_status_uses_entry_id(event_router, ledger):
    event_router.dispatch(change_event("user", "status", {"message": "hi"}, time=7000, entry_id="U9"))
    assert ledger.lookup("U9").last_activity == 7000


def test_unknown_fields_are_dropped_without_stopping_other_changes(event_router, ledger):
    payload = {
        "object": "group",
        "entry": [
            {
                "id": "G1",
                "time": 3000,
                "changes": [
                    {"field": "mystery", "value": {"from": {"id": "U1"}}},
                    {"field": "comments", "value": {}},
                    {"field": "comments", "value": {"from": {"id": "U2"}}},
                ],
            }
        ],
    }

    event_router.dispatch(payload)

    assert ledger.lookup("U1") is None
    assert ledger.lookup("U2").last_activity == 3000


def test_unknown_security_field_is_dropped(event_router, ledger):
    event_router.dispatch(change_event("workplace_security", "passwords", {"target_id": "U1"}))
    assert ledger.lookup("U1") is None


def test_invalid_payload_is_dropped(event_router, ledger, messenger):
    event_router.dispatch({"entry": "not-a-list"})
    event_router.dispatch({"object": "page", "entry": [{"messaging": [{"message": {"text": "no sender"}}]}]})
    assert len(ledger) == 0
    assert messenger.profile_fetches == 0


def test_network_failure_is_contained(event_router, messenger):
    event_router.dispatch(page_event("STRANGER", text="hi"))
    messenger.add_profile("U1", cover=None)
    event_router.dispatch(page_event("U1", text="hi"))
    assert len(messenger.prompts) == 1


def test_bad_change_does_not_discard_the_rest_of_the_delivery(event_router, ledger):
    payload = {
        "object": "workplace_security",
        "entry": [
            {
                "id": "G1",
                "time": 4000,
                "changes": [
                    {"field": "sessions", "value": {"event": "LOGIN", "target_id": "U1"}},
                    {"field": "sessions", "value": None},
                ],
            },
            {"id": "G2", "time": "yesterday", "changes": []},
            {"id": "G3", "time": 4500, "changes": [{"field": "sessions", "value": {"event": "LOGIN", "target_id": "U2"}}]},
        ],
    }

    event_router.dispatch(payload)

    assert ledger.lookup("U1").last_activity == 4000
    assert ledger.lookup("U2").last_activity == 4500


def test_messaging_item_without_sender_does_not_block_its_neighbours(event_router, messenger):
    messenger.add_profile("U1", cover=None)
    payload = {
        "object": "page",
        "entry": [
            {
                "id": "PAGE",
                "time": 1,
                "messaging": [
                    {"recipient": {"id": "PAGE"}, "message": {"mid": "m0", "text": "no sender"}},
                    {"sender": {"id": "U1"}, "recipient": {"id": "PAGE"}, "message": {"mid": "m1", "text": "hi"}},
                ],
            }
        ],
    }

    event_router.dispatch(payload)

    assert [p.account_id for p in messenger.prompts] == ["U1"]


def test_page_echoes_are_ignored(event_router, messenger):
    echo = page_event("PAGE", text="Your profile is still missing a manager :(")
    echo["entry"][0]["messaging"][0]["message"]["is_echo"] = True

    event_router.dispatch(echo)

    assert messenger.profile_fetches == 0
    assert messenger.prompts == []


class GreetingFailsMessenger(FakeMessenger):
    def send_text(self, account_id: str, text: str) -> None:
        if text.startswith("Hello"):
            raise TransientNetworkError("send message", status=500, detail="boom")
        super().send_text(account_id, text)


def test_failed_greeting_stops_the_welcome_sequence():
    messenger = GreetingFailsMessenger()
    messenger.add_profile("NEW", name="Grace Hopper")
    flow = WelcomeFlow(messenger, "Robotics Club", ["Read the handbook.", "Say hi in the lobby."])

    with pytest.raises(TransientNetworkError):
        flow.welcome("NEW")

    assert messenger.texts == []
    assert messenger.prompts == []


def test_failed_welcome_send_is_contained_by_the_router(event_router, messenger):
    messenger.add_profile("NEW")
    messenger.failing_recipients.add("NEW")

    event_router.dispatch(
        change_event("workplace_security", "admin_activity", {"event": "ADMIN_CREATE_ACCOUNT", "target_id": "NEW"})
    )

    assert messenger.texts_to("NEW") == []
    assert messenger.prompts == []
