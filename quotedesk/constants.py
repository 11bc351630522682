"""Application-wide constants and defaults."""
from __future__ import annotations

import os
from decimal import Decimal

APP_NAME = "Quotedesk"

DEFAULT_CURRENCY = os.getenv("QUOTEDESK_DEFAULT_CURRENCY", "MXN")
IVA_RATE = Decimal(os.getenv("QUOTEDESK_IVA_RATE", "0.16"))

ITEM_TYPE_SERVICES = "SERVICES"
ITEM_TYPE_TOUR = "TOUR"
ITEM_TYPES: tuple[str, ...] = (ITEM_TYPE_SERVICES, ITEM_TYPE_TOUR)

DEFAULT_EXPERIENCE_TYPE = "Experience"
DEFAULT_EXPERIENCE_LENGTH = 1000
DEFAULT_RATE_COLOR = "#6c757d"

# Editor-side defaults; durations are seconds.
DEFAULT_CACHE_TTL = float(os.getenv("QUOTEDESK_CACHE_TTL", "600"))
DEFAULT_MAX_RETRIES = int(os.getenv("QUOTEDESK_MAX_RETRIES", "3"))
DEFAULT_RETRY_DELAY = float(os.getenv("QUOTEDESK_RETRY_DELAY", "1.0"))
DEFAULT_MAX_HISTORY_LENGTH = int(os.getenv("QUOTEDESK_MAX_HISTORY_LENGTH", "50"))

ACTING_USER_HEADER = "X-User-Email"

# Subconcept ``type`` values that map onto a priced catalog item.
SUBCONCEPT_ITEM_TYPES: dict[str, str] = {
    "traslado": ITEM_TYPE_SERVICES,
    "service": ITEM_TYPE_SERVICES,
    "services": ITEM_TYPE_SERVICES,
    "tour": ITEM_TYPE_TOUR,
}
