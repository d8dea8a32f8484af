"""CLI entry point for the trade ledger."""

from __future__ import annotations

import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Awaitable, Callable

import click

from .core.enums import TradingPlatform

_PLATFORMS = click.Choice([p.value for p in TradingPlatform], case_sensitive=False)


def _read(path: str | None) -> str | None:
    if path is None:
        return None
    return Path(path).read_text(encoding="utf-8-sig")


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _run_or_fail(coro_fn: Callable[[], Awaitable[Any]]) -> Any:
    """Run an async command body; ledger errors become clean CLI failures."""
    import asyncio

    from .core.errors import LedgerError

    try:
        return asyncio.run(coro_fn())
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option("--config", "config_path", default=None, help="Config file path (TOML)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, config_path: str | None) -> None:
    """Trade ledger: import platform exports and compute P&L statistics."""
    from .core.config import load_settings
    from .observability import setup_logging

    settings = load_settings(config_path)
    setup_logging(
        log_level or settings.observability.log_level,
        settings.observability.log_format,
    )
    ctx.obj = settings


@main.command()
@click.argument("platform", type=_PLATFORMS)
@click.argument("trades_csv", type=click.Path(exists=True, dir_okay=False))
@click.option("--orders", "orders_csv", default=None, type=click.Path(exists=True, dir_okay=False),
              help="ProjectX orders export (SL/TP levels)")
def parse(platform: str, trades_csv: str, orders_csv: str | None) -> None:
    """Parse an export and print the result summary."""
    from .importers import get_parser
    from .importers.projectx import ProjectXParser

    parser = get_parser(platform)
    if parser is None:
        raise click.ClickException(f"No parser for platform {platform!r}; map columns manually")

    text = _read(trades_csv) or ""
    if isinstance(parser, ProjectXParser):
        result = parser.parse_with_orders(text, _read(orders_csv))
    else:
        result = parser.parse(text)

    _echo_json({
        "success": result.success,
        "total_rows": result.total_rows,
        "parsed_rows": result.parsed_rows,
        "skipped_rows": result.skipped_rows,
        "errors": [e.model_dump(exclude={"raw_data"}) for e in result.errors],
        "warnings": result.warnings,
    })
    if not result.success:
        raise SystemExit(1)


@main.command()
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
def detect(csv_file: str) -> None:
    """Print the platform whose export format matches CSV_FILE."""
    from .importers import BaseCSVParser, detect_platform

    headers = BaseCSVParser.headers_of(_read(csv_file) or "")
    platform = detect_platform(headers)
    if platform is None:
        raise click.ClickException("Unrecognized export format")
    click.echo(platform.value)


@main.command()
@click.argument("trades_csv", type=click.Path(exists=True, dir_okay=False))
@click.option("--platform", required=True, type=_PLATFORMS)
@click.option("--orders", "orders_csv", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--threshold", default=None, type=str, help="Breakeven threshold (default from config)")
@click.pass_obj
def stats(settings: Any, trades_csv: str, platform: str, orders_csv: str | None,
          threshold: str | None) -> None:
    """Compute statistics for an export without touching a database."""
    from .ledger import StaticSettingsProvider, TradeLedger
    from .storage.memory import InMemoryTradeStore

    be = settings.ledger.default_breakeven_threshold
    if threshold is not None:
        try:
            be = Decimal(threshold)
        except InvalidOperation:
            raise click.BadParameter(f"not a number: {threshold!r}", param_hint="--threshold") from None
    if be < 0:
        raise click.BadParameter("must be >= 0", param_hint="--threshold")

    async def _run() -> dict[str, Any]:
        # One local file, so the per-request batch limit does not apply.
        ledger = TradeLedger(
            InMemoryTradeStore(),
            StaticSettingsProvider(be),
            max_batch_rows=sys.maxsize,
            tie_break=settings.ledger.exit_tie_break,
            orders_match_window_seconds=settings.importer.orders_match_window_seconds,
        )
        summary = await ledger.import_csv(
            0, None, platform, _read(trades_csv) or "", _read(orders_csv)
        )
        snap = await ledger.stats(0)
        return {"import": summary.model_dump(), "stats": snap.model_dump(mode="json")}

    _echo_json(_run_or_fail(_run))


@main.command("import")
@click.argument("trades_csv", type=click.Path(exists=True, dir_okay=False))
@click.option("--platform", required=True, type=_PLATFORMS)
@click.option("--user-id", required=True, type=int)
@click.option("--account-id", default=None, type=int)
@click.option("--orders", "orders_csv", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--create-tables", is_flag=True, help="Create missing tables first (dev only)")
@click.pass_obj
def import_(settings: Any, trades_csv: str, platform: str, user_id: int,
            account_id: int | None, orders_csv: str | None, create_tables: bool) -> None:
    """Import an export into the configured database."""
    from .ledger import TradeLedger
    from .storage.postgres.connection import dispose, get_session, init_engine
    from .storage.postgres.repos import SqlSettingsProvider, SqlTradeStore

    async def _run() -> dict[str, Any]:
        await init_engine(settings.postgres_url, create_tables=create_tables)
        try:
            async with get_session() as session:
                ledger = TradeLedger.from_settings(
                    SqlTradeStore(session),
                    settings,
                    SqlSettingsProvider(session, settings.ledger.default_breakeven_threshold),
                )
                summary = await ledger.import_csv(
                    user_id, account_id, platform, _read(trades_csv) or "", _read(orders_csv)
                )
            return summary.model_dump()
        finally:
            await dispose()

    _echo_json(_run_or_fail(_run))


if __name__ == "__main__":
    main()
