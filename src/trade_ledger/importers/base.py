"""Shared machinery for platform CSV parsers.

A parser turns the raw text of one platform export into
:class:`~trade_ledger.core.models.ParsedTradeDraft` objects.  The base
class owns everything that is not platform specific:

* CSV decoding (quoted fields, BOM, blank lines, duplicate headers)
* header normalization and signature validation
* the per-row loop: a bad row becomes a :class:`ParseError` keyed by its
  source row number and never aborts the rest of the file
* symbol, direction, timestamp, decimal and fee normalization helpers

Subclasses declare their columns and implement :meth:`parse_row`.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, ClassVar, Iterable, Sequence

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_datetime_flexible
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from trade_ledger.core.enums import Direction, TradingPlatform
from trade_ledger.core.models import ParsedTradeDraft, to_utc

logger = logging.getLogger(__name__)

_EXPIRATION = re.compile(r"^(.+?)[FGHJKMNQUVXZ]\d{1,2}$", re.IGNORECASE)
_WS = re.compile(r"\s+")

_LONG_TOKENS = frozenset({"buy", "long", "b"})
_SHORT_TOKENS = frozenset({"sell", "short", "s"})

_FEE_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class ParseError(BaseModel):
    """One rejected source row.  ``row`` 0 means the file as a whole."""

    row: int
    message: str
    field: str | None = None
    raw_data: str | None = None


class ParseResult(BaseModel):
    success: bool = False
    trades: list[ParsedTradeDraft] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    total_rows: int = 0
    parsed_rows: int = 0
    skipped_rows: int = 0

    @classmethod
    def failed(cls, message: str, total_rows: int = 0) -> ParseResult:
        """File-level failure; the caller may fall back to manual mapping."""
        return cls(
            success=False,
            errors=[ParseError(row=0, message=message)],
            total_rows=total_rows,
            skipped_rows=total_rows,
        )


class RowError(Exception):
    """Raised by :meth:`BaseCSVParser.parse_row` to reject one row."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def normalize_header(header: str) -> str:
    """Lowercase with all whitespace removed: ``" Open Time"`` -> ``"opentime"``."""
    return _WS.sub("", header.lstrip("\ufeff")).lower()


def strip_expiration(contract: str) -> str:
    """Drop a futures month code and 1-2 digit year: ``MNQZ5`` -> ``MNQ``."""
    text = contract.strip()
    m = _EXPIRATION.match(text)
    if m is not None:
        text = m.group(1)
    return text.upper()


def normalize_direction(token: str) -> tuple[Direction, bool]:
    """Map a side token onto a direction.

    Returns ``(direction, recognized)``.  Anything not in the long
    vocabulary is short; ``recognized`` is False when the token is in
    neither vocabulary.
    """
    t = token.strip().lower()
    if t in _LONG_TOKENS:
        return Direction.LONG, True
    return Direction.SHORT, t in _SHORT_TOKENS


def parse_decimal(value: str | None, field: str, *, required: bool = False) -> Decimal | None:
    text = (value or "").strip().replace(",", "")
    if not text:
        if required:
            raise RowError(f"Missing {field}", field=field)
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        raise RowError(f"Invalid number for {field}: {value!r}", field=field) from None
    if not result.is_finite():
        raise RowError(f"Invalid number for {field}: {value!r}", field=field)
    return result


def sum_fees(values: Iterable[Decimal | None]) -> Decimal | None:
    """Total of the fee-like columns, rounded to cents.  ``None`` when zero."""
    total = sum((v for v in values if v is not None), Decimal("0"))
    total = total.quantize(_FEE_PLACES, rounding=ROUND_HALF_UP)
    return total if total != 0 else None


# ---------------------------------------------------------------------------
# Base parser
# ---------------------------------------------------------------------------

class BaseCSVParser(ABC):
    """Template for one platform's export format.

    Subclasses set the class attributes and implement :meth:`parse_row`.
    """

    platform: ClassVar[TradingPlatform]
    name: ClassVar[str]
    description: ClassVar[str]

    #: Display names of the export's columns, in export order.
    columns: ClassVar[tuple[str, ...]] = ()
    #: Normalized header keys that must be present.
    required: ClassVar[tuple[str, ...]] = ()
    #: ``strptime`` formats tried before the generic parser.
    date_formats: ClassVar[tuple[str, ...]] = ()
    #: Noun used in file-level messages ("Trades CSV", "CSV").
    file_label: ClassVar[str] = "CSV"

    def expected_columns(self) -> list[str]:
        return list(self.columns)

    def validate_headers(self, headers: Sequence[str]) -> bool:
        keys = {normalize_header(h) for h in headers}
        return all(col in keys for col in self.required)

    # ------------------------------------------------------------------ #
    # CSV decoding                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def read_csv(raw_text: str) -> tuple[list[str], list[dict[str, str]]]:
        """Decode CSV text into display headers and normalized-key rows.

        A repeated header gets a ``.1``, ``.2`` ... suffix on its later
        occurrences so both columns survive.
        """
        text = raw_text.lstrip("\ufeff")
        reader = csv.reader(io.StringIO(text))
        records = [r for r in reader if any(cell.strip() for cell in r)]
        if not records:
            return [], []

        headers = [h.strip() for h in records[0]]
        keys: list[str] = []
        seen: dict[str, int] = {}
        for h in headers:
            key = normalize_header(h)
            n = seen.get(key, 0)
            seen[key] = n + 1
            keys.append(key if n == 0 else f"{key}.{n}")

        rows = []
        for record in records[1:]:
            row = {k: (record[i].strip() if i < len(record) else "") for i, k in enumerate(keys)}
            rows.append(row)
        return headers, rows

    @staticmethod
    def headers_of(raw_text: str) -> list[str]:
        """First non-blank record of *raw_text*."""
        reader = csv.reader(io.StringIO(raw_text.lstrip("\ufeff")))
        for record in reader:
            if any(cell.strip() for cell in record):
                return [c.strip() for c in record]
        return []

    # ------------------------------------------------------------------ #
    # Field helpers                                                        #
    # ------------------------------------------------------------------ #

    def parse_timestamp(
        self,
        value: str | None,
        *,
        row_number: int,
        field: str,
        warnings: list[str],
        required: bool = True,
    ) -> datetime | None:
        """Native formats, then a generic parse, then "now".

        Never raises.  A blank optional value gives ``None``.
        """
        text = (value or "").strip()
        if not text:
            if not required:
                return None
            warnings.append(f"Row {row_number}: missing {field}, using current time")
            return datetime.now(timezone.utc)

        for fmt in self.date_formats:
            try:
                return to_utc(datetime.strptime(text, fmt))
            except ValueError:
                continue
        try:
            return to_utc(parse_datetime_flexible(text))
        except (ParserError, ValueError, OverflowError):
            logger.debug("Row %d: unparseable %s %r", row_number, field, text)
        warnings.append(f"Row {row_number}: could not parse {field} {text!r}, using current time")
        return datetime.now(timezone.utc)

    def direction_of(
        self, token: str, *, row_number: int, warnings: list[str]
    ) -> Direction:
        direction, recognized = normalize_direction(token)
        if not recognized:
            warnings.append(
                f"Row {row_number}: unrecognized direction {token!r}, treated as short"
            )
        return direction

    # ------------------------------------------------------------------ #
    # Parsing                                                              #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def parse_row(
        self,
        row: dict[str, str],
        row_number: int,
        warnings: list[str],
        context: Any = None,
    ) -> ParsedTradeDraft | None:
        """Map one data row.  Return ``None`` to skip a non-trade row.

        *context* is whatever the caller handed to :meth:`parse_rows`.  It
        lives for one parse call, so a shared parser instance stays
        stateless.
        """

    def parse(self, raw_text: str) -> ParseResult:
        headers, rows = self.read_csv(raw_text)
        return self.parse_rows(headers, rows)

    def parse_rows(
        self,
        headers: list[str],
        rows: list[dict[str, str]],
        context: Any = None,
    ) -> ParseResult:
        if not rows:
            return ParseResult.failed(
                f"{self.file_label} must have headers and at least one data row"
            )
        if not self.validate_headers(headers):
            keys = {normalize_header(h) for h in headers}
            missing = [c for c in self.required if c not in keys]
            return ParseResult.failed(
                f"{self.file_label} does not look like a {self.name} export; "
                f"missing columns: {', '.join(missing)}",
                total_rows=len(rows),
            )

        trades: list[ParsedTradeDraft] = []
        errors: list[ParseError] = []
        warnings: list[str] = []
        ignored = 0

        for i, row in enumerate(rows):
            row_number = i + 2  # header is row 1
            try:
                draft = self.parse_row(row, row_number, warnings, context)
            except RowError as exc:
                errors.append(
                    ParseError(
                        row=row_number,
                        message=str(exc),
                        field=exc.field,
                        raw_data=json.dumps(row),
                    )
                )
                logger.debug("%s row %d skipped: %s", self.name, row_number, exc)
                continue
            except PydanticValidationError as exc:
                first = exc.errors()[0]
                field = ".".join(str(p) for p in first["loc"]) or None
                errors.append(
                    ParseError(
                        row=row_number,
                        message=f"Invalid {field}: {first['msg']}",
                        field=field,
                        raw_data=json.dumps(row),
                    )
                )
                logger.debug("%s row %d invalid: %s", self.name, row_number, field)
                continue
            if draft is None:
                ignored += 1
                continue
            trades.append(draft)

        if trades and errors:
            warnings.append(
                f"{len(errors)} row(s) were skipped due to missing or invalid data."
            )

        result = ParseResult(
            success=bool(trades),
            trades=trades,
            errors=errors,
            warnings=warnings,
            total_rows=len(rows),
            parsed_rows=len(trades),
            skipped_rows=len(errors) + ignored,
        )
        logger.info(
            "%s parse: rows=%d parsed=%d skipped=%d",
            self.name, result.total_rows, result.parsed_rows, result.skipped_rows,
        )
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} platform={self.platform.value}>"


def first_present(row: dict[str, Any], *keys: str) -> str:
    """Value of the first key present and non-blank in *row*."""
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return ""
