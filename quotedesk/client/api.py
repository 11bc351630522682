"""Cached, deduplicated access to the quoting service for the quote editor."""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel, Field

from ..constants import (
    ACTING_USER_HEADER,
    DEFAULT_CACHE_TTL,
    DEFAULT_CURRENCY,
    DEFAULT_EXPERIENCE_LENGTH,
    DEFAULT_EXPERIENCE_TYPE,
    DEFAULT_MAX_HISTORY_LENGTH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    IVA_RATE,
    ITEM_TYPE_SERVICES,
    ITEM_TYPE_TOUR,
)
from ..errors import QuotingError, error_for_status
from .cache import (
    All,
    ByDate,
    ByPeople,
    ByQuote,
    ByRate,
    DayDate,
    InvalidationIntent,
    QuoteDataCache,
    experiences_key,
    quote_key,
    rates_key,
    services_key,
    tour_destinations_key,
    tour_vehicles_key,
)
from .dedup import RequestDeduplicator

logger = logging.getLogger(__name__)

_CLIENT_PRICE_PATHS = {ITEM_TYPE_SERVICES: ("/services/client-prices", "serviceId"), ITEM_TYPE_TOUR: ("/tours/client-prices", "tourId")}
_PRICE_MATRIX_PATHS = {ITEM_TYPE_SERVICES: "/services/{}/prices", ITEM_TYPE_TOUR: "/tours/{}/prices"}


class QuoteServicesOptions(BaseModel):
    """Editor-side settings; durations are seconds."""

    cache_ttl: float = Field(DEFAULT_CACHE_TTL, gt=0)
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)
    retry_delay: float = Field(DEFAULT_RETRY_DELAY, ge=0)
    max_history_length: int = Field(DEFAULT_MAX_HISTORY_LENGTH, ge=1)
    iva_rate: Decimal = IVA_RATE
    default_currency: str = DEFAULT_CURRENCY
    acting_user: Optional[str] = None


def _day_param(day_date: DayDate) -> Optional[str]:
    if not day_date:
        return None
    return day_date.isoformat() if isinstance(day_date, date) else str(day_date)


def raise_for_error(response: httpx.Response) -> None:
    """Translate an error reply into the matching :class:`QuotingError`."""

    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    detail: Any = None
    code = None
    if isinstance(body, dict):
        detail = body.get("detail")
        code = body.get("code")
    message = detail if isinstance(detail, str) else (str(detail) if detail else response.text or response.reason_phrase)
    raise error_for_status(response.status_code, message, code)


class QuoteServicesAPI:
    """Read path for the editor: cache in front, dedup and retry behind."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        options: Optional[QuoteServicesOptions] = None,
        *,
        cache: Optional[QuoteDataCache] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.options = options or QuoteServicesOptions()
        self.cache = cache or QuoteDataCache(self.options.cache_ttl, clock=clock)
        self.requests = RequestDeduplicator(
            client,
            max_retries=self.options.max_retries,
            retry_delay=self.options.retry_delay,
            sleep=sleep,
        )

    def _headers(self) -> dict[str, str]:
        if self.options.acting_user:
            return {ACTING_USER_HEADER: self.options.acting_user}
        return {}

    async def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        params = {key: value for key, value in (params or {}).items() if value is not None}
        response = await self.requests.request_with_retry("GET", url, params=params or None, headers=self._headers())
        raise_for_error(response)
        return response.json()

    async def get_quote(self, quote_id: str) -> dict[str, Any]:
        return await self.cache.get_or_set(quote_key(quote_id), lambda: self._get_json(f"/quotes/{quote_id}"))

    async def get_rates(self) -> list[dict[str, Any]]:
        return await self.cache.get_or_set(rates_key(), lambda: self._get_json("/rates/active"))

    async def get_services_by_rate(self, rate_id: Optional[str], number_of_people: Optional[int] = None) -> list:
        if not rate_id:
            return []
        return await self.cache.get_or_set(
            services_key(rate_id, number_of_people),
            lambda: self._get_json(f"/services/by-rate/{rate_id}", {"numberOfPeople": number_of_people or None}),
        )

    async def get_experiences(self, experience_type: str = DEFAULT_EXPERIENCE_TYPE, day_date: DayDate = None) -> list:
        return await self.cache.get_or_set(
            experiences_key(experience_type, day_date),
            lambda: self._get_json(
                "/experiences",
                {"type": experience_type, "length": DEFAULT_EXPERIENCE_LENGTH, "dayDate": _day_param(day_date)},
            ),
        )

    async def get_tour_destinations(self, rate_id: Optional[str], day_date: DayDate = None) -> list:
        if not rate_id:
            return []
        return await self.cache.get_or_set(
            tour_destinations_key(rate_id, day_date),
            lambda: self._get_json(f"/tours/destinations/by-rate/{rate_id}", {"dayDate": _day_param(day_date)}),
        )

    async def get_tour_vehicles(
        self,
        rate_id: Optional[str],
        destination_id: Optional[str],
        number_of_people: Optional[int] = None,
        day_date: DayDate = None,
    ) -> list:
        if not rate_id or not destination_id:
            return []
        return await self.cache.get_or_set(
            tour_vehicles_key(rate_id, destination_id, number_of_people, day_date),
            lambda: self._get_json(
                f"/tours/vehicles/by-rate-destination/{rate_id}/{destination_id}",
                {"numberOfPeople": number_of_people or None, "dayDate": _day_param(day_date)},
            ),
        )

    async def resolve_price(
        self,
        item_type: str,
        item_id: str,
        rate_id: str,
        vehicle_type_id: str,
        client_id: Optional[str] = None,
        currency: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Resolved prices are never cached; overrides can change under an open quote."""

        return await self._get_json(
            "/pricing/resolve",
            {
                "itemType": item_type,
                "itemId": item_id,
                "rateId": rate_id,
                "vehicleTypeId": vehicle_type_id,
                "clientId": client_id,
                "currency": currency,
                "asOf": as_of.isoformat() if as_of else None,
            },
        )

    async def get_price_matrix(self, item_type: str, item_id: str, client_id: Optional[str] = None) -> list:
        return await self._get_json(_PRICE_MATRIX_PATHS[item_type].format(item_id), {"clientId": client_id})

    async def update_service_items(self, quote_id: str, service_items: dict[str, Any]) -> dict[str, Any]:
        response = await self.requests.request_with_retry(
            "PUT", f"/quotes/{quote_id}/service-items", json_body=service_items, headers=self._headers()
        )
        raise_for_error(response)
        self.cache.invalidate(ByQuote(quote_id))
        return response.json()

    async def save_client_prices(
        self, item_type: str, item_id: str, client_id: str, prices: list[dict[str, Any]]
    ) -> dict[str, Any]:
        # Writes are not idempotent, so they go out once.
        path, item_field = _CLIENT_PRICE_PATHS[item_type]
        response = await self.requests.request(
            "POST",
            path,
            json_body={"clientId": client_id, item_field: item_id, "prices": prices},
            headers=self._headers(),
        )
        raise_for_error(response)
        return response.json()

    async def prefetch_common_data(self, quote_id: Optional[str] = None, rate_id: Optional[str] = None) -> bool:
        """Warm the cache; failures are logged and never raised."""

        loads = [self.get_rates()]
        if rate_id:
            loads.extend([self.get_services_by_rate(rate_id), self.get_tour_destinations(rate_id)])
        results = await asyncio.gather(*loads, return_exceptions=True)
        failures = [result for result in results if isinstance(result, BaseException)]
        for failure in failures:
            if not isinstance(failure, (QuotingError, httpx.HTTPError)):
                raise failure
            logger.warning("Prefetch failed for quote %s (non-critical): %s", quote_id, failure)
        return not failures

    def invalidate(self, intent: InvalidationIntent) -> int:
        return self.cache.invalidate(intent)

    def invalidate_people_cache(self) -> int:
        return self.invalidate(ByPeople())

    def invalidate_date_cache(self, day_date: DayDate = None) -> int:
        return self.invalidate(ByDate(day_date))

    def invalidate_rate_cache(self, rate_id: Optional[str] = None) -> int:
        return self.invalidate(ByRate(rate_id))

    def clear_cache(self) -> int:
        return self.invalidate(All())

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()
