"""Static instrument reference table for P&L math.

Contract specifications for the CME / CBOT / NYMEX / COMEX futures and
the forex pairs the journal supports.  Values are the exchange point
values for futures and approximate USD pip values per standard lot for
forex (cross pairs are static estimates, not live conversions).

:func:`resolve` is total: a symbol missing from the tables falls back to
a multiplier of 1 (futures) or a standard-lot pip value (forex) so an
unrecognized ticker never blocks an import.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from .enums import InstrumentType
from .models import InstrumentSpec

logger = logging.getLogger(__name__)

DEFAULT_MULTIPLIER = Decimal("1")
DEFAULT_TICK_SIZE = Decimal("0.01")
DEFAULT_PIP_SIZE = Decimal("0.0001")
DEFAULT_PIP_VALUE = Decimal("10")

# symbol: (point_value, tick_size, tick_value)
_FUTURES_SPECS: dict[str, tuple[str, str, str]] = {
    # Equity index
    "ES": ("50", "0.25", "12.5"),
    "NQ": ("20", "0.25", "5.0"),
    "YM": ("5", "1", "5.0"),
    "RTY": ("50", "0.1", "5.0"),
    "MES": ("5", "0.25", "1.25"),
    "MNQ": ("2", "0.25", "0.5"),
    "MYM": ("0.5", "1", "0.5"),
    "M2K": ("5", "0.1", "0.5"),
    "NKD": ("5", "5", "25.0"),
    # Energy
    "CL": ("1000", "0.01", "10.0"),
    "MCL": ("100", "0.01", "1.0"),
    "NG": ("10000", "0.001", "10.0"),
    "MNG": ("1000", "0.001", "1.0"),
    # Metals
    "GC": ("100", "0.1", "10.0"),
    "MGC": ("10", "0.1", "1.0"),
    "SI": ("5000", "0.005", "25.0"),
    "SIL": ("1000", "0.005", "5.0"),
    # Currency futures
    "6A": ("100000", "0.0001", "10.0"),
    "6B": ("62500", "0.0001", "6.25"),
    "6C": ("100000", "0.0001", "10.0"),
    "6E": ("125000", "0.0001", "12.5"),
    "6J": ("12500000", "0.0000005", "6.25"),
    "6M": ("500000", "0.00001", "5.0"),
    "6N": ("100000", "0.0001", "10.0"),
    "6S": ("125000", "0.0001", "12.5"),
    "M6A": ("10000", "0.0001", "1.0"),
    "M6B": ("6250", "0.0001", "0.625"),
    "M6E": ("12500", "0.0001", "1.25"),
    "MCD": ("10000", "0.0001", "1.0"),
    "MSF": ("12500", "0.0001", "1.25"),
    # Crypto
    "MBT": ("0.1", "5", "0.5"),
    # Interest rates
    "ZB": ("1000", "0.03125", "31.25"),
    "ZN": ("1000", "0.015625", "15.625"),
    "ZF": ("1000", "0.0078125", "7.8125"),
    "ZT": ("2000", "0.0078125", "15.625"),
    "TN": ("1000", "0.015625", "15.625"),
    "UB": ("1000", "0.03125", "31.25"),
    # Grains
    "ZC": ("50", "0.25", "12.5"),
    "XC": ("10", "0.125", "1.25"),
    "ZW": ("50", "0.25", "12.5"),
    "ZO": ("50", "0.25", "12.5"),
    "ZR": ("20", "0.005", "0.1"),
    "ZS": ("50", "0.25", "12.5"),
    "ZL": ("600", "0.01", "6.0"),
    "ZM": ("100", "0.1", "10.0"),
    # Livestock
    "LE": ("400", "0.025", "10.0"),
    "GF": ("500", "0.025", "12.5"),
    "HE": ("400", "0.025", "10.0"),
}

# pair: (pip_size, pip_value_per_lot)
_FX_SPECS: dict[str, tuple[str, str]] = {
    # Majors
    "EUR/USD": ("0.0001", "10"),
    "GBP/USD": ("0.0001", "10"),
    "AUD/USD": ("0.0001", "10"),
    "NZD/USD": ("0.0001", "10"),
    "USD/JPY": ("0.01", "9.1"),
    "USD/CHF": ("0.0001", "11.2"),
    "USD/CAD": ("0.0001", "7.4"),
    # JPY crosses
    "EUR/JPY": ("0.01", "9.1"),
    "GBP/JPY": ("0.01", "9.1"),
    "AUD/JPY": ("0.01", "9.1"),
    "NZD/JPY": ("0.01", "9.1"),
    "CAD/JPY": ("0.01", "9.1"),
    "CHF/JPY": ("0.01", "9.1"),
    # Other crosses
    "EUR/GBP": ("0.0001", "12.5"),
    "EUR/AUD": ("0.0001", "6.5"),
    "EUR/CAD": ("0.0001", "7.4"),
    "EUR/CHF": ("0.0001", "11.2"),
    "EUR/NZD": ("0.0001", "5.9"),
    "GBP/AUD": ("0.0001", "6.5"),
    "GBP/CAD": ("0.0001", "7.4"),
    "GBP/CHF": ("0.0001", "11.2"),
    "GBP/NZD": ("0.0001", "5.9"),
    "AUD/CAD": ("0.0001", "7.4"),
    "AUD/CHF": ("0.0001", "11.2"),
    "AUD/NZD": ("0.0001", "5.9"),
    "NZD/CAD": ("0.0001", "7.4"),
    "NZD/CHF": ("0.0001", "11.2"),
    "CAD/CHF": ("0.0001", "11.2"),
}

_CURRENCIES = frozenset(
    part for pair in _FX_SPECS for part in pair.split("/")
)

# Broker variants: "EURUSD", "EUR_USD", "eurusd.m", "EURUSDpro"
_FX_PATTERN = re.compile(r"^([A-Z]{3})[/_\-]?([A-Z]{3})")


def _build_futures() -> dict[str, InstrumentSpec]:
    return {
        sym: InstrumentSpec(
            symbol=sym,
            instrument_type=InstrumentType.FUTURES,
            point_value=Decimal(pv),
            tick_size=Decimal(ts),
            tick_value=Decimal(tv),
        )
        for sym, (pv, ts, tv) in _FUTURES_SPECS.items()
    }


def _build_forex() -> dict[str, InstrumentSpec]:
    result: dict[str, InstrumentSpec] = {}
    for pair, (pip_size, pip_value) in _FX_SPECS.items():
        base, quote = pair.split("/")
        result[pair] = InstrumentSpec(
            symbol=pair,
            instrument_type=InstrumentType.FOREX,
            pip_size=Decimal(pip_size),
            pip_value_per_lot=Decimal(pip_value),
            base=base,
            quote=quote,
        )
    return result


FUTURES_SPECS: dict[str, InstrumentSpec] = _build_futures()
FOREX_SPECS: dict[str, InstrumentSpec] = _build_forex()


@dataclass(frozen=True)
class InstrumentResolution:
    """Result of :func:`resolve`: what the P&L calculator needs."""

    symbol: str
    instrument_type: InstrumentType
    multiplier: Decimal  # Futures point value, or pip value for forex
    is_pip_based: bool
    pip_size: Decimal | None = None
    spec: InstrumentSpec | None = None

    @property
    def known(self) -> bool:
        return self.spec is not None


def normalize_fx_symbol(symbol: str) -> str | None:
    """Map broker pair spellings onto ``"BASE/QUOTE"``.

    Returns ``None`` when *symbol* does not look like a currency pair.
    """
    m = _FX_PATTERN.match(symbol.strip().upper())
    if m is None:
        return None
    base, quote = m.group(1), m.group(2)
    if base not in _CURRENCIES or quote not in _CURRENCIES:
        return None
    return f"{base}/{quote}"


def _lookup_futures(symbol: str) -> InstrumentSpec | None:
    return FUTURES_SPECS.get(symbol.strip().upper())


def _lookup_forex(symbol: str) -> InstrumentSpec | None:
    pair = normalize_fx_symbol(symbol)
    if pair is None:
        return None
    return FOREX_SPECS.get(pair)


def infer_instrument_type(symbol: str) -> InstrumentType:
    """Guess the instrument class of a bare symbol.

    A listed futures root wins; anything that reads as a currency pair is
    forex; everything else defaults to futures.
    """
    if _lookup_futures(symbol) is not None:
        return InstrumentType.FUTURES
    if normalize_fx_symbol(symbol) is not None:
        return InstrumentType.FOREX
    return InstrumentType.FUTURES


def get_spec(
    symbol: str, instrument_type: InstrumentType | None = None
) -> InstrumentSpec | None:
    """Return the static spec for *symbol*, or ``None`` if unlisted."""
    if instrument_type == InstrumentType.FUTURES:
        return _lookup_futures(symbol)
    if instrument_type == InstrumentType.FOREX:
        return _lookup_forex(symbol)
    return _lookup_futures(symbol) or _lookup_forex(symbol)


def resolve(
    symbol: str, instrument_type: InstrumentType | None = None
) -> InstrumentResolution:
    """Resolve *symbol* to its P&L multiplier.  Never raises."""
    itype = instrument_type or infer_instrument_type(symbol)
    spec = get_spec(symbol, itype)

    if itype == InstrumentType.FOREX:
        if spec is None:
            logger.debug("No forex spec for %s, using standard lot defaults", symbol)
            return InstrumentResolution(
                symbol=symbol,
                instrument_type=itype,
                multiplier=DEFAULT_PIP_VALUE,
                is_pip_based=True,
                pip_size=DEFAULT_PIP_SIZE,
            )
        return InstrumentResolution(
            symbol=spec.symbol,
            instrument_type=itype,
            multiplier=spec.pip_value_per_lot or DEFAULT_PIP_VALUE,
            is_pip_based=True,
            pip_size=spec.pip_size or DEFAULT_PIP_SIZE,
            spec=spec,
        )

    if spec is None:
        logger.debug("No contract spec for %s, using multiplier 1", symbol)
        return InstrumentResolution(
            symbol=symbol,
            instrument_type=itype,
            multiplier=DEFAULT_MULTIPLIER,
            is_pip_based=False,
        )
    return InstrumentResolution(
        symbol=spec.symbol,
        instrument_type=itype,
        multiplier=spec.point_value or DEFAULT_MULTIPLIER,
        is_pip_based=False,
        spec=spec,
    )


def get_point_value(symbol: str, instrument_type: InstrumentType) -> Decimal:
    """Dollar value of a point (futures) or pip per lot (forex)."""
    return resolve(symbol, instrument_type).multiplier


def get_tick_size(symbol: str, instrument_type: InstrumentType) -> Decimal:
    """Minimum price increment (futures) or pip size (forex)."""
    res = resolve(symbol, instrument_type)
    if res.is_pip_based:
        return res.pip_size or DEFAULT_PIP_SIZE
    if res.spec is not None and res.spec.tick_size is not None:
        return res.spec.tick_size
    return DEFAULT_TICK_SIZE


def known_symbols(instrument_type: InstrumentType | None = None) -> list[str]:
    """Listed symbols, futures first."""
    if instrument_type == InstrumentType.FUTURES:
        return list(FUTURES_SPECS)
    if instrument_type == InstrumentType.FOREX:
        return list(FOREX_SPECS)
    return list(FUTURES_SPECS) + list(FOREX_SPECS)
