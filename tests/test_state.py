from __future__ import annotations

import logging
from datetime import datetime

import pytest

from quotedesk.client.state import QuoteState


def two_day_state(**kwargs) -> QuoteState:
    return QuoteState(
        {
            "quoteId": "Q1",
            "serviceItems": {
                "days": [
                    {"dayNumber": 1, "dayDate": "2026-10-19", "subconcepts": []},
                    {"dayNumber": 2, "dayDate": "2026-10-20", "subconcepts": []},
                ],
                "subtotal": 0,
                "iva": 0,
                "total": 0,
            },
        },
        **kwargs,
    )


def test_adding_a_subconcept_recalculates_totals_and_marks_dirty() -> None:
    state = two_day_state()
    assert state.get("hasUnsavedChanges") is False

    assert state.add_subconcept(0, {"type": "traslado", "itemId": "S42", "price": 1000})
    items = state.recalculate_totals()

    assert items["days"][0]["dayTotal"] == 1000.0
    assert items["days"][1]["dayTotal"] == 0.0
    assert items["subtotal"] == 1000.0
    assert items["iva"] == 160.0
    assert items["total"] == 1160.0
    assert state.get("serviceItems") == items
    assert state.get("hasUnsavedChanges") is True


def test_recalculating_twice_gives_the_same_totals() -> None:
    state = two_day_state()
    state.add_subconcept(1, {"price": "333.333"})
    first = state.recalculate_totals()
    second = state.recalculate_totals()
    assert first == second
    assert second["subtotal"] == 333.33


def test_mutators_never_touch_the_previous_value() -> None:
    state = two_day_state()
    before = state.get("serviceItems")
    state.add_subconcept(0, {"price": 10})
    assert before["days"][0]["subconcepts"] == []
    assert state.get_history(10)[-1].old_value is before


def test_remove_day_renumbers_the_rest() -> None:
    state = two_day_state()
    state.add_day({"dayTitle": "Departure"})
    assert [day["dayNumber"] for day in state.get("serviceItems")["days"]] == [1, 2, 3]

    assert state.remove_day(0)
    days = state.get("serviceItems")["days"]
    assert [day["dayNumber"] for day in days] == [1, 2]
    assert [day["dayDate"] for day in days[:1]] == ["2026-10-20"]
    assert days[1]["dayTitle"] == "Departure"


def test_out_of_range_edits_are_ignored() -> None:
    state = two_day_state()
    assert state.remove_day(5) is False
    assert state.add_subconcept(2, {"price": 1}) is False
    assert state.update_subconcept(0, 0, {"price": 1}) is False
    assert state.remove_subconcept(-1, 0) is False
    assert state.get("hasUnsavedChanges") is False


def test_update_and_remove_subconcept() -> None:
    state = two_day_state()
    state.add_subconcept(0, {"itemId": "S42", "price": 100})
    state.add_subconcept(0, {"itemId": "E2", "price": 50})
    assert state.update_subconcept(0, 1, {"price": 75})
    assert state.remove_subconcept(0, 0)
    assert state.get("serviceItems")["days"][0]["subconcepts"] == [{"itemId": "E2", "price": 75}]


def test_setting_an_equal_scalar_is_a_no_op() -> None:
    state = QuoteState()
    calls = []
    state.subscribe("numberOfPeople", lambda new, old: calls.append((new, old)))

    assert state.set("numberOfPeople", 0) is False
    assert calls == []
    assert state.get_history() == []

    assert state.set("numberOfPeople", 4) is True
    assert calls == [(4, 0)]


def test_structured_values_always_count_as_changes() -> None:
    state = QuoteState()
    assert state.set("validationErrors", []) is True


def test_ui_keys_do_not_mark_the_quote_dirty() -> None:
    state = QuoteState()
    state.set("isLoading", True)
    state.set("isSaving", True)
    assert state.get("hasUnsavedChanges") is False

    state.set("rateId", "R-Premium")
    assert state.get("hasUnsavedChanges") is True


def test_silent_set_skips_subscribers_and_dirty_flag() -> None:
    state = QuoteState()
    calls = []
    state.subscribe("rateId", lambda new, old: calls.append(new))
    state.set_multiple({"rateId": "R-Green", "rateName": "Green"}, silent=True)
    assert calls == []
    assert state.get("hasUnsavedChanges") is False
    assert state.get("rateName") == "Green"


def test_failing_subscriber_does_not_stop_the_others(caplog: pytest.LogCaptureFixture) -> None:
    state = QuoteState()
    seen = []

    def broken(new, old):
        raise RuntimeError("listener bug")

    state.subscribe("numberOfPeople", broken)
    state.subscribe("numberOfPeople", lambda new, old: seen.append(new))

    with caplog.at_level(logging.ERROR, logger="quotedesk.client.state"):
        state.set("numberOfPeople", 6)

    assert seen == [6]
    assert state.get("numberOfPeople") == 6
    assert "Subscriber for numberOfPeople failed" in caplog.text


def test_unsubscribe_stops_notifications() -> None:
    state = QuoteState()
    seen = []
    handle = state.subscribe("rateId", lambda new, old: seen.append(new))
    state.set("rateId", "R1")
    assert state.unsubscribe(handle) is True
    assert state.unsubscribe(handle) is False
    state.set("rateId", "R2")
    assert seen == ["R1"]


def test_history_keeps_the_most_recent_changes_in_order() -> None:
    state = QuoteState(max_history_length=3)
    for people in range(1, 6):
        state.set("numberOfPeople", people, silent=True)

    history = state.get_history(10)
    assert [entry.new_value for entry in history] == [3, 4, 5]
    assert [(entry.old_value, entry.new_value) for entry in state.get_history(1)] == [(4, 5)]
    assert state.get_history(0) == []

    state.clear_history()
    assert state.get_history() == []


def test_a_change_logs_one_entry_and_flags_dirty_after_subscribers() -> None:
    state = QuoteState()
    flag_during_callback = []
    state.subscribe("numberOfPeople", lambda new, old: flag_during_callback.append(state.get("hasUnsavedChanges")))
    dirty_notices = []
    state.subscribe("hasUnsavedChanges", lambda new, old: dirty_notices.append(new))

    state.set("numberOfPeople", 2)

    assert flag_during_callback == [False]
    assert state.get("hasUnsavedChanges") is True
    assert dirty_notices == []
    assert [entry.key for entry in state.get_history()] == ["numberOfPeople"]


def test_mark_as_saved_is_silent() -> None:
    state = QuoteState()
    state.set("numberOfPeople", 2)
    changes = []
    state.subscribe("hasUnsavedChanges", lambda new, old: changes.append(new))
    state.subscribe("lastSaved", lambda new, old: changes.append(new))

    state.mark_as_saved()

    assert changes == []
    assert state.get("hasUnsavedChanges") is False
    assert isinstance(state.get("lastSaved"), datetime)

    state.mark_as_unsaved()
    assert changes == [True]


def test_reset_can_keep_the_loaded_quote() -> None:
    state = two_day_state()
    state.set("quoteData", {"id": "Q1", "title": "Riviera"})
    state.set_multiple({"rateId": "R-Premium", "rateName": "Premium", "numberOfPeople": 3})
    calls = []
    for key in ("quoteId", "rateId", "numberOfPeople", "serviceItems", "hasUnsavedChanges"):
        state.subscribe(key, lambda new, old, key=key: calls.append(key))

    state.reset(keep_quote_data=True)
    assert calls == []
    assert state.get("quoteId") == "Q1"
    assert state.get("rateId") == "R-Premium"
    assert state.get("rateName") == "Premium"
    assert state.get("serviceItems")["days"] == []
    assert state.get("quoteData") == {"id": "Q1", "title": "Riviera"}
    assert state.get("numberOfPeople") == 0
    assert state.get("hasUnsavedChanges") is False
    assert state.get_history() == []

    state.reset()
    assert state.get("quoteId") is None
    assert state.get("rateId") is None
    assert calls == []


def test_json_snapshot_round_trips() -> None:
    state = two_day_state()
    state.set("numberOfPeople", 4)
    state.mark_as_saved()
    snapshot = state.to_json()

    restored = QuoteState()
    restored.from_json(snapshot)

    assert restored.get("quoteId") == "Q1"
    assert restored.get("numberOfPeople") == 4
    assert restored.get("serviceItems") == state.get("serviceItems")
    assert restored.get("lastSaved") == state.get("lastSaved")
