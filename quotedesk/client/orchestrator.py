"""Glue between the editor's state and the read path."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, Optional

import httpx

from ..constants import SUBCONCEPT_ITEM_TYPES
from ..errors import InvalidArgument, QuotingError
from .api import QuoteServicesAPI
from .cache import ByDate, ByPeople, ByRate
from .state import QuoteState, Subscription

logger = logging.getLogger(__name__)


def _day_dates(service_items: Any) -> dict[int, Any]:
    days = (service_items or {}).get("days") or []
    return {day.get("dayNumber", index + 1): day.get("dayDate") for index, day in enumerate(days)}


class QuoteEditor:
    """Loads a quote into :class:`QuoteState` and keeps the cache honest as it changes."""

    def __init__(self, api: QuoteServicesAPI, state: Optional[QuoteState] = None, quote_id: Optional[str] = None):
        self.api = api
        self.state = state or QuoteState(
            max_history_length=api.options.max_history_length, iva_rate=api.options.iva_rate
        )
        self.quote_id = quote_id
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()

    async def open(self, quote_id: Optional[str] = None) -> dict[str, Any]:
        self.quote_id = quote_id or self.quote_id
        if not self.quote_id:
            raise InvalidArgument("A quote id is required to open the editor")

        self.state.set("isLoading", True)
        try:
            quote = await self.api.get_quote(self.quote_id)
            self.state.set_multiple(
                {
                    "quoteId": self.quote_id,
                    "quoteData": quote,
                    "rateId": quote.get("rateId"),
                    "rateName": quote.get("rateName"),
                    "numberOfPeople": quote.get("numberOfPeople") or 0,
                    "serviceItems": quote.get("serviceItems") or {"days": [], "subtotal": 0, "iva": 0, "total": 0},
                },
                silent=True,
            )
        finally:
            self.state.set("isLoading", False)

        await self.api.prefetch_common_data(self.quote_id, quote.get("rateId"))
        self._subscribe()
        return quote

    def _subscribe(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self.state.subscribe("numberOfPeople", self._on_people_changed),
            self.state.subscribe("rateId", self._on_rate_changed),
            self.state.subscribe("serviceItems", self._on_service_items_changed),
        ]

    def _schedule(self, coro: Awaitable[Any], label: str) -> None:
        task = asyncio.ensure_future(self._guarded(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, coro: Awaitable[Any], label: str) -> None:
        try:
            await coro
        except (QuotingError, httpx.HTTPError) as exc:
            logger.warning("Background refresh of %s failed: %s", label, exc)

    def _on_people_changed(self, new_value: Any, old_value: Any) -> None:
        self.api.invalidate(ByPeople())

    def _on_rate_changed(self, new_value: Any, old_value: Any) -> None:
        self.api.invalidate(ByRate())
        if new_value:
            self._schedule(self.api.prefetch_common_data(self.quote_id, new_value), f"rate {new_value}")

    def _on_service_items_changed(self, new_value: Any, old_value: Any) -> None:
        before = _day_dates(old_value)
        after = _day_dates(new_value)
        changed = [number for number, day_date in after.items() if before.get(number) != day_date]
        if not changed:
            return
        self.api.invalidate(ByDate())
        rate_id = self.state.get("rateId")
        people = self.state.get("numberOfPeople")
        days = {day.get("dayNumber"): day for day in (new_value or {}).get("days") or []}
        for number in changed:
            day = days.get(number) or {}
            day_date = day.get("dayDate")
            if not day_date or not rate_id:
                continue
            self._schedule(self.api.get_tour_destinations(rate_id, day_date), f"destinations for day {number}")
            destinations = {
                sub.get("destinationId") for sub in day.get("subconcepts") or [] if sub.get("destinationId")
            }
            for destination_id in sorted(destinations):
                self._schedule(
                    self.api.get_tour_vehicles(rate_id, destination_id, people, day_date),
                    f"vehicles for day {number}",
                )

    # Subconcept edits recalculate totals straight away.

    def add_day(self, day: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        new_day = self.state.add_day(day)
        self.state.recalculate_totals()
        return new_day

    def remove_day(self, day_index: int) -> bool:
        removed = self.state.remove_day(day_index)
        if removed:
            self.state.recalculate_totals()
        return removed

    def add_subconcept(self, day_index: int, subconcept: Mapping[str, Any]) -> bool:
        added = self.state.add_subconcept(day_index, subconcept)
        if added:
            self.state.recalculate_totals()
        return added

    def update_subconcept(self, day_index: int, subconcept_index: int, updates: Mapping[str, Any]) -> bool:
        updated = self.state.update_subconcept(day_index, subconcept_index, updates)
        if updated:
            self.state.recalculate_totals()
        return updated

    def remove_subconcept(self, day_index: int, subconcept_index: int) -> bool:
        removed = self.state.remove_subconcept(day_index, subconcept_index)
        if removed:
            self.state.recalculate_totals()
        return removed

    async def price_subconcept(self, day_index: int, subconcept_index: int) -> dict[str, Any]:
        """Ask the resolver for a subconcept's price and pin the answer into the state."""

        days = (self.state.get("serviceItems") or {}).get("days") or []
        try:
            subconcept = days[day_index]["subconcepts"][subconcept_index]
        except (IndexError, KeyError) as exc:
            raise InvalidArgument(f"No subconcept {subconcept_index} on day {day_index}") from exc

        item_type = SUBCONCEPT_ITEM_TYPES.get(str(subconcept.get("type", "")).strip().lower())
        rate_id = subconcept.get("rateRef") or self.state.get("rateId")
        if not (item_type and subconcept.get("itemId") and rate_id and subconcept.get("vehicleRef")):
            raise InvalidArgument("Subconcept needs a priced type, itemId, rate and vehicleRef")

        quote = self.state.get("quoteData") or {}
        resolved = await self.api.resolve_price(
            item_type,
            subconcept["itemId"],
            rate_id,
            subconcept["vehicleRef"],
            client_id=quote.get("clientRef"),
            currency=quote.get("currency"),
        )
        self.update_subconcept(
            day_index,
            subconcept_index,
            {
                "price": resolved["price"],
                "basePrice": resolved["basePrice"],
                "isClientPrice": resolved["isClientPrice"],
            },
        )
        return resolved

    async def save(self) -> dict[str, Any]:
        """PUT the service items; on failure the dirty flag stays set and the error propagates.

        Edits made while the request is in flight win over the server reply
        and keep the quote dirty.
        """

        self.state.set("isSaving", True)
        try:
            sent = self.state.get("serviceItems")
            pinned = await self.api.update_service_items(self.quote_id, sent)
            if self.state.get("serviceItems") is sent:
                self.state.set("serviceItems", pinned, silent=True)
                self.state.mark_as_saved()
            else:
                logger.info("Quote %s changed while saving; keeping the local edits", self.quote_id)
            return pinned
        finally:
            self.state.set("isSaving", False)

    async def save_client_prices(self, item_type: str, item_id: str, prices: list[dict[str, Any]]) -> dict[str, Any]:
        quote = self.state.get("quoteData") or {}
        client_id = quote.get("clientRef")
        if not client_id:
            raise InvalidArgument("The quote has no client to attach prices to")
        return await self.api.save_client_prices(item_type, item_id, client_id, prices)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def close(self) -> None:
        for handle in self._subscriptions:
            self.state.unsubscribe(handle)
        self._subscriptions = []
        for task in list(self._tasks):
            task.cancel()
