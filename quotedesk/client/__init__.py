"""Editor-side engine: cached reads, reactive quote state and the orchestrator."""
from .api import QuoteServicesAPI, QuoteServicesOptions
from .cache import All, ByDate, ByPeople, ByQuote, ByRate, QuoteDataCache, pattern_for
from .dedup import RequestDeduplicator
from .orchestrator import QuoteEditor
from .state import QuoteState, Subscription

__all__ = [
    "All",
    "ByDate",
    "ByPeople",
    "ByQuote",
    "ByRate",
    "QuoteDataCache",
    "QuoteEditor",
    "QuoteServicesAPI",
    "QuoteServicesOptions",
    "QuoteState",
    "RequestDeduplicator",
    "Subscription",
    "pattern_for",
]
