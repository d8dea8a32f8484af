"""Platform import normalizer.

Registry of CSV parsers by trading platform.  Platforms registered with
``None`` are known but require manual column mapping.
"""

from __future__ import annotations

from typing import Sequence

from trade_ledger.core.enums import TradingPlatform

from .base import BaseCSVParser, ParseError, ParseResult, strip_expiration
from .metatrader import MT4Parser, MT5Parser
from .projectx import ProjectXParser, validate_orders_headers

_PARSERS: dict[TradingPlatform, BaseCSVParser | None] = {
    TradingPlatform.MT4: MT4Parser(),
    TradingPlatform.MT5: MT5Parser(),
    TradingPlatform.PROJECTX: ProjectXParser(),
    TradingPlatform.NINJATRADER: None,
    TradingPlatform.OTHER: None,
}

PLATFORM_LABELS: dict[TradingPlatform, str] = {
    TradingPlatform.MT4: "MetaTrader 4",
    TradingPlatform.MT5: "MetaTrader 5",
    TradingPlatform.PROJECTX: "ProjectX",
    TradingPlatform.NINJATRADER: "NinjaTrader",
    TradingPlatform.OTHER: "Other / Manual",
}


def get_parser(
    platform: TradingPlatform | str, *, match_window_seconds: int | None = None
) -> BaseCSVParser | None:
    """Parser for *platform*, or ``None`` when it needs manual mapping."""
    platform = TradingPlatform(platform)
    if platform is TradingPlatform.PROJECTX and match_window_seconds is not None:
        return ProjectXParser(match_window_seconds)
    return _PARSERS[platform]


def supported_platforms() -> list[dict[str, str]]:
    """Platforms with a parser, for an import picker."""
    return [
        {
            "value": platform.value,
            "label": PLATFORM_LABELS[platform],
            "description": parser.description,
        }
        for platform, parser in _PARSERS.items()
        if parser is not None
    ]


def detect_platform(headers: Sequence[str]) -> TradingPlatform | None:
    """First registered platform whose header signature matches."""
    for platform, parser in _PARSERS.items():
        if parser is not None and parser.validate_headers(headers):
            return platform
    return None


__all__ = [
    "BaseCSVParser",
    "MT4Parser",
    "MT5Parser",
    "PLATFORM_LABELS",
    "ParseError",
    "ParseResult",
    "ProjectXParser",
    "detect_platform",
    "get_parser",
    "strip_expiration",
    "supported_platforms",
    "validate_orders_headers",
]
