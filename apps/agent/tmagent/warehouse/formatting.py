"""Turn warehouse rows into text the generator can read."""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal


def format_number(value: float | int | None) -> str:
    if value is None:
        return "N/A"
    n = float(value)
    if abs(n) >= 1e9:
        return f"{n / 1e9:.2f}B"
    if abs(n) >= 1e6:
        return f"{n / 1e6:.2f}M"
    if abs(n) >= 1e3:
        return f"{n / 1e3:.2f}K"
    return f"{n:.2f}"


def format_signal(signal: int | None) -> str:
    if signal == 1:
        return "Bullish"
    if signal == -1:
        return "Bearish"
    return "Neutral"


def format_trend(trend: int | None) -> str:
    if trend == 1:
        return "Uptrend"
    if trend == -1:
        return "Downtrend"
    return "Sideways"


def _jsonable(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def rows_to_columns(rows: list[dict]) -> dict[str, list]:
    """[{col: v}, ...] → {col: [v, ...]}, the shape the reply prompt expects."""
    out: dict[str, list] = {}
    for row in rows:
        for key, value in row.items():
            out.setdefault(key, []).append(_jsonable(value))
    return out


def rows_for_prompt(rows: list[dict]) -> str:
    if not rows:
        return "No matching data."
    return json.dumps(rows_to_columns(rows), default=str)


def snapshot_lines(rows: list[dict]) -> str:
    """One line per token for the periodic market post prompt."""
    lines = []
    for r in rows:
        r = {k.upper(): v for k, v in r.items()}
        lines.append(
            "{name} ({symbol}): trader grade {grade}, market cap ${mcap}, 24h volume ${vol}, "
            "signal {signal}, trend {trend}".format(
                name=r.get("TOKEN_NAME", "?"),
                symbol=r.get("TOKEN_SYMBOL", "?"),
                grade=format_number(r.get("TM_TRADER_GRADE")),
                mcap=format_number(r.get("MARKET_CAP")),
                vol=format_number(r.get("VOLUME_24H")),
                signal=format_signal(r.get("TRADING_SIGNAL")),
                trend=format_trend(r.get("TOKEN_TREND")),
            )
        )
    return "\n".join(lines)
