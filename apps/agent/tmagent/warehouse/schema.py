"""Static description of the token metrics warehouse view.

Drives both the rule-based planner (column keywords) and the schema block
handed to the LLM when it writes SQL itself.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: str
    description: str
    keywords: tuple[str, ...] = ()


COLUMNS: dict[str, ColumnSpec] = {c.name: c for c in [
    ColumnSpec("TM_TRADER_GRADE", "FLOAT",
               "TM Trader Grade (%) for short term traders. Higher is more bullish.",
               ("trader grade", "trader", "short term", "short-term")),
    ColumnSpec("TA_GRADE", "FLOAT",
               "Technical Analysis Grade (%). Higher means more bullish.",
               ("technical analysis", "ta grade", "technicals")),
    ColumnSpec("QUANT_GRADE", "FLOAT",
               "Quantitative analysis grade based on market metrics.",
               ("quant", "quantitative")),
    ColumnSpec("TM_INVESTOR_GRADE", "FLOAT",
               "Long-term investor grade considering fundamentals and tokenomics.",
               ("investor grade", "investor", "long term", "long-term", "100x")),
    ColumnSpec("FUNDAMENTAL_GRADE", "FLOAT",
               "Project fundamentals score including team, roadmap, and adoption.",
               ("fundamental", "fundamentals")),
    ColumnSpec("TECHNOLOGY_GRADE", "FLOAT",
               "Technical implementation and innovation score.",
               ("technology", "tech grade", "innovation")),
    ColumnSpec("VALUATION_GRADE", "FLOAT",
               "Token valuation analysis compared to peers.",
               ("valuation grade",)),
    ColumnSpec("TVL", "FLOAT",
               "Total Value Locked in USD.",
               ("tvl", "value locked", "locked")),
    ColumnSpec("TRADING_SIGNAL", "NUMBER",
               "Current Trading Signal (1: bullish now, -1: bearish now, 0: no signal now). Do not order by.",
               ("signal", "signals", "buy signal", "sell signal")),
    ColumnSpec("TOKEN_TREND", "NUMBER",
               "Trend (1: bullish trend, -1: bearish trend). Do not order by.",
               ("trend", "trending", "bullish", "bearish")),
    ColumnSpec("MARKET_CAP", "FLOAT",
               "Market cap in USD. Higher means more.",
               ("market cap", "marketcap", "mcap")),
    ColumnSpec("VOLUME_24H", "FLOAT",
               "24h trading volume in USD.",
               ("volume", "traded", "liquidity")),
    ColumnSpec("CURRENT_PRICE", "FLOAT",
               "Current price in USD. Do not use to decide whether to buy.",
               ("price", "cost")),
    ColumnSpec("FULLY_DILUTED_VALUATION", "FLOAT",
               "Low FDV is good for long term investment, more room to grow.",
               ("fdv", "fully diluted")),
    ColumnSpec("PREDICTED_RETURNS_7D", "FLOAT",
               "Predicted 7d price percent change.",
               ("prediction", "forecast", "predicted")),
    ColumnSpec("SCENARIO_ANALYSIS", "ARRAY",
               "Price prediction for different dominance and total market cap scenarios.",
               ("scenario", "price prediction")),
    ColumnSpec("SUMMARY", "VARCHAR",
               "Brief description of the token including its primary use case.",
               ("summary", "what is", "about")),
]}

# Always shown so a reply can name and link the token
MANDATORY_COLUMNS: tuple[str, ...] = (
    "TOKEN_NAME",
    "TOKEN_SYMBOL",
    "TOKEN_URL",
    "MARKET_CAP",
    "FULLY_DILUTED_VALUATION",
    "CURRENT_PRICE",
)

TRADER_GRADE = "TM_TRADER_GRADE"
INVESTOR_GRADE = "TM_INVESTOR_GRADE"

CONTRIBUTORY_GRADES: dict[str, tuple[str, ...]] = {
    TRADER_GRADE: ("TA_GRADE", "QUANT_GRADE"),
    INVESTOR_GRADE: ("FUNDAMENTAL_GRADE", "TECHNOLOGY_GRADE", "VALUATION_GRADE"),
}

HIGH_GRADE_THRESHOLD = 70
LOW_GRADE_THRESHOLD = 30


def schema_block(table: str) -> str:
    """Render the view as a CREATE TABLE block for prompts."""
    lines = [
        "TOKEN_NAME VARCHAR",
        "TOKEN_SYMBOL VARCHAR",
        "TOKEN_URL VARCHAR 'URL to the token details page'",
    ]
    lines += [f"{c.name} {c.type} '{c.description}'" for c in COLUMNS.values()]
    body = ",\n    ".join(lines)
    return f"CREATE TABLE {table} (\n    {body}\n);"
