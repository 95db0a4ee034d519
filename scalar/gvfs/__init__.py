from .json_iter import JsonToken, JsonType, first_match, iterate_json
from .negotiator import (
    CacheServerEntry,
    CacheServerNegotiator,
    ProbeMode,
    ProbeResult,
)

__all__ = [
    "CacheServerEntry",
    "CacheServerNegotiator",
    "JsonToken",
    "JsonType",
    "ProbeMode",
    "ProbeResult",
    "first_match",
    "iterate_json",
]
