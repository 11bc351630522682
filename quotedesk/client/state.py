"""Reactive quote state held by the editor."""
from __future__ import annotations

import copy
import itertools
import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ..constants import DEFAULT_MAX_HISTORY_LENGTH, IVA_RATE
from ..money import compute_totals

logger = logging.getLogger(__name__)

UI_KEYS = frozenset({"isLoading", "isSaving", "lastSaved", "hasUnsavedChanges"})
_SCALARS = (str, int, float, bool, Decimal, date, datetime, type(None))

Subscriber = Callable[[Any, Any], Any]


def initial_state() -> dict[str, Any]:
    return {
        "quoteId": None,
        "quoteData": None,
        "rateId": None,
        "rateName": None,
        "numberOfPeople": 0,
        "serviceItems": {"days": [], "subtotal": 0, "iva": 0, "total": 0},
        "isLoading": False,
        "isSaving": False,
        "lastSaved": None,
        "hasUnsavedChanges": False,
        "validationErrors": [],
    }


def _unchanged(old: Any, new: Any) -> bool:
    if old is new:
        return True
    return isinstance(old, _SCALARS) and type(old) is type(new) and old == new


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


@dataclass(frozen=True)
class Subscription:
    key: str
    token: int


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: float
    key: str
    old_value: Any
    new_value: Any


class QuoteState:
    """Key/value state with per-key subscribers, a bounded change log and a dirty flag.

    Day and subconcept mutators always replace ``serviceItems`` with a modified
    deep copy, so the previous value kept in the history is never touched.
    """

    def __init__(
        self,
        initial: Optional[Mapping[str, Any]] = None,
        *,
        max_history_length: int = DEFAULT_MAX_HISTORY_LENGTH,
        iva_rate: Any = IVA_RATE,
        clock: Callable[[], float] = time.time,
    ):
        self._state = {**initial_state(), **(initial or {})}
        self._subscribers: dict[str, dict[int, Subscriber]] = {}
        self._tokens = itertools.count(1)
        self._history: deque[HistoryEntry] = deque(maxlen=max_history_length)
        self.iva_rate = iva_rate
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def get_all(self) -> dict[str, Any]:
        return dict(self._state)

    def set(self, key: str, value: Any, silent: bool = False) -> bool:
        old_value = self._state.get(key)
        if _unchanged(old_value, value):
            return False
        self._state[key] = value
        self._history.append(HistoryEntry(self._clock(), key, old_value, value))
        if not silent:
            self._notify(key, value, old_value)
            if key not in UI_KEYS:
                # Written directly so the flag leaves no history entry.
                self._state["hasUnsavedChanges"] = True
        return True

    def set_multiple(self, updates: Mapping[str, Any], silent: bool = False) -> None:
        for key, value in updates.items():
            self.set(key, value, silent)

    def subscribe(self, key: str, callback: Subscriber) -> Subscription:
        handle = Subscription(key, next(self._tokens))
        self._subscribers.setdefault(key, {})[handle.token] = callback
        return handle

    def unsubscribe(self, handle: Subscription) -> bool:
        return self._subscribers.get(handle.key, {}).pop(handle.token, None) is not None

    def _notify(self, key: str, new_value: Any, old_value: Any) -> None:
        for callback in list(self._subscribers.get(key, {}).values()):
            try:
                callback(new_value, old_value)
            except Exception:
                logger.exception("Subscriber for %s failed", key)

    def get_history(self, count: int = 10) -> list[HistoryEntry]:
        """The last ``count`` changes, oldest first."""
        if count <= 0:
            return []
        return list(self._history)[-count:]

    def clear_history(self) -> None:
        self._history.clear()

    def mark_as_saved(self) -> None:
        self.set("hasUnsavedChanges", False, silent=True)
        self.set("lastSaved", datetime.now(), silent=True)

    def mark_as_unsaved(self) -> None:
        self.set("hasUnsavedChanges", True)

    def reset(self, keep_quote_data: bool = False) -> None:
        """Back to the initial state without notifying subscribers.

        With ``keep_quote_data`` the loaded quote and its rate survive.
        """
        old_state = self._state
        self._state = initial_state()
        if keep_quote_data:
            for key in ("quoteId", "quoteData", "rateId", "rateName"):
                self._state[key] = old_state.get(key)
        self.clear_history()

    def to_json(self) -> str:
        return json.dumps(self._state, default=_json_default)

    def from_json(self, payload: str | Mapping[str, Any]) -> None:
        data = json.loads(payload) if isinstance(payload, str) else dict(payload)
        if isinstance(data.get("lastSaved"), str):
            data["lastSaved"] = datetime.fromisoformat(data["lastSaved"])
        self._state.update(data)

    # Service items

    def _service_items(self) -> dict[str, Any]:
        items = copy.deepcopy(self._state.get("serviceItems") or {})
        items.setdefault("days", [])
        return items

    def _day_at(self, items: dict[str, Any], day_index: int) -> Optional[dict[str, Any]]:
        days = items["days"]
        return days[day_index] if 0 <= day_index < len(days) else None

    def add_day(self, day: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        items = self._service_items()
        new_day = {"subconcepts": [], "dayTotal": 0, **dict(day or {})}
        new_day.setdefault("dayNumber", len(items["days"]) + 1)
        items["days"].append(new_day)
        self.set("serviceItems", items)
        return new_day

    def update_day(self, day_index: int, updates: Mapping[str, Any]) -> bool:
        items = self._service_items()
        day = self._day_at(items, day_index)
        if day is None:
            return False
        day.update(updates)
        self.set("serviceItems", items)
        return True

    def remove_day(self, day_index: int) -> bool:
        items = self._service_items()
        if self._day_at(items, day_index) is None:
            return False
        del items["days"][day_index]
        for number, day in enumerate(items["days"], start=1):
            day["dayNumber"] = number
        self.set("serviceItems", items)
        return True

    def add_subconcept(self, day_index: int, subconcept: Mapping[str, Any]) -> bool:
        items = self._service_items()
        day = self._day_at(items, day_index)
        if day is None:
            return False
        day.setdefault("subconcepts", []).append(dict(subconcept))
        self.set("serviceItems", items)
        return True

    def update_subconcept(self, day_index: int, subconcept_index: int, updates: Mapping[str, Any]) -> bool:
        items = self._service_items()
        day = self._day_at(items, day_index)
        subconcepts = (day or {}).get("subconcepts") or []
        if not 0 <= subconcept_index < len(subconcepts):
            return False
        subconcepts[subconcept_index].update(updates)
        self.set("serviceItems", items)
        return True

    def remove_subconcept(self, day_index: int, subconcept_index: int) -> bool:
        items = self._service_items()
        day = self._day_at(items, day_index)
        subconcepts = (day or {}).get("subconcepts") or []
        if not 0 <= subconcept_index < len(subconcepts):
            return False
        del subconcepts[subconcept_index]
        self.set("serviceItems", items)
        return True

    def recalculate_totals(self) -> dict[str, Any]:
        items = self._service_items()
        totals = compute_totals(items["days"], self.iva_rate)
        for day, day_total in zip(items["days"], totals["day_totals"]):
            day["dayTotal"] = float(day_total)
        items["subtotal"] = float(totals["subtotal"])
        items["iva"] = float(totals["iva"])
        items["total"] = float(totals["total"])
        self.set("serviceItems", items)
        return items
