"""Question → query plan.

Two ways to get SQL for a free-text question:

* ``synthesize()`` — deterministic. Columns, filters, sort key and row limit
  come from keyword matches against the static schema table and an ordered
  sort-rule table (first match wins). Same question, same plan.
* ``LlmQuerySynthesizer`` — the text generator writes the SQL from the schema,
  rules and examples. Its output is untrusted and goes through
  ``sanitize_generated_sql`` before anything reaches the warehouse.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tmagent.errors import QueryExecutionError
from tmagent.generation.prompts import build_sql_prompt
from tmagent.warehouse.schema import (
    COLUMNS,
    CONTRIBUTORY_GRADES,
    HIGH_GRADE_THRESHOLD,
    INVESTOR_GRADE,
    LOW_GRADE_THRESHOLD,
    MANDATORY_COLUMNS,
    TRADER_GRADE,
)

if TYPE_CHECKING:
    from tmagent.generation.llm import TextGenerator

logger = logging.getLogger(__name__)


# ── Plan types ──

@dataclass(frozen=True)
class Predicate:
    column: str
    op: str  # "=", ">", "<"
    value: str | float

    def to_sql(self) -> str:
        if isinstance(self.value, str):
            return f"LOWER({self.column}) {self.op} LOWER('{self.value}')"
        value = int(self.value) if float(self.value).is_integer() else self.value
        return f"{self.column} {self.op} {value}"


@dataclass(frozen=True)
class SortKey:
    column: str
    descending: bool = True
    nulls_last: bool = True

    def to_sql(self) -> str:
        sql = f"{self.column} {'DESC' if self.descending else 'ASC'}"
        if self.nulls_last:
            sql += " NULLS LAST"
        return sql


@dataclass(frozen=True)
class QueryPlan:
    columns: tuple[str, ...]
    sort: SortKey
    limit: int
    table: str
    filters: tuple[Predicate, ...] = field(default=())

    def to_sql(self) -> str:
        sql = f"SELECT {', '.join(self.columns)} FROM {self.table}"
        if self.filters:
            sql += " WHERE " + " AND ".join(p.to_sql() for p in self.filters)
        sql += f" ORDER BY {self.sort.to_sql()} LIMIT {self.limit}"
        return sql

    @property
    def cache_key(self) -> str:
        return self.to_sql()


# ── Intent detection ──

_CASHTAG_RE = re.compile(r"\$([A-Za-z][A-Za-z0-9]{1,9})\b")
_TOP_N_RE = re.compile(r"\btop\s+(\d{1,3})\b")
_LIST_RE = re.compile(r"\b(top|tokens|coins|list|projects|ones)\b")
_SINGLE_RE = re.compile(r"\b(which|what)\s+(token|coin|crypto)\b")

TVL_WORDS = ("tvl", "value locked")
VALUE_WORDS = ("value", "valuation", "price", "worth", "market cap", "marketcap", "mcap")
GRADE_WORDS = ("grade", "grades", "graded", "score", "scores", "rating", "rated", "buy", "100x", "gem")
INVESTOR_WORDS = ("investor", "long term", "long-term", "100x", "hold", "hodl", "fundamental", "fundamentals")


def _has_any(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"(?<![\w$]){re.escape(w)}(?!\w)", text) for w in words)


def _primary_grade(text: str) -> str:
    return INVESTOR_GRADE if _has_any(text, INVESTOR_WORDS) else TRADER_GRADE


# Ordered, first match wins. Each rule returns a sort column or None.
SORT_RULES: list[tuple[str, callable]] = [
    ("tvl", lambda t: "TVL" if _has_any(t, TVL_WORDS) else None),
    ("value", lambda t: "MARKET_CAP" if _has_any(t, VALUE_WORDS) else None),
    ("grade", lambda t: _primary_grade(t) if _has_any(t, GRADE_WORDS) else None),
]
DEFAULT_SORT_COLUMN = "VOLUME_24H"


def choose_sort(text: str) -> tuple[str, str]:
    """Return (rule name, sort column) for lowercased question text."""
    for name, rule in SORT_RULES:
        column = rule(text)
        if column:
            return name, column
    return "default", DEFAULT_SORT_COLUMN


def extract_symbol(question: str, context: str = "") -> str | None:
    """Cashtag from the question, else the most recent one in the context.

    The context fallback is skipped for list questions ("top tokens ...").
    """
    found = _CASHTAG_RE.findall(question)
    if found:
        return found[0].upper()
    if context and not _LIST_RE.search(question.lower()):
        found = _CASHTAG_RE.findall(context)
        if found:
            return found[-1].upper()
    return None


def _matched_columns(text: str) -> list[str]:
    matched = []
    for col in COLUMNS.values():
        names = (col.name.lower(), col.name.lower().replace("_", " "))
        if _has_any(text, names + col.keywords):
            matched.append(col.name)
    return matched


def _dedupe(items: list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return tuple(out)


# ── Rule-based synthesis ──

def synthesize(
    question: str,
    conversation_context: str = "",
    *,
    table: str,
    max_rows: int = 10,
) -> QueryPlan:
    """Build a bounded QueryPlan from question text. Pure and deterministic."""
    text = question.lower()

    columns = list(MANDATORY_COLUMNS)
    columns += _matched_columns(text)

    rule, sort_column = choose_sort(text)
    columns.append(sort_column)

    filters: list[Predicate] = []
    symbol = extract_symbol(question, conversation_context)
    if symbol:
        filters.append(Predicate("TOKEN_SYMBOL", "=", symbol))

    if _has_any(text, GRADE_WORDS):
        grade = _primary_grade(text)
        columns.append(grade)
        if re.search(r"\bhigh\b", text):
            filters.append(Predicate(grade, ">", HIGH_GRADE_THRESHOLD))
        elif re.search(r"\blow\b", text):
            filters.append(Predicate(grade, "<", LOW_GRADE_THRESHOLD))

    for primary, contributors in CONTRIBUTORY_GRADES.items():
        if primary in columns:
            columns += contributors

    limit = max_rows
    top = _TOP_N_RE.search(text)
    if top:
        limit = max(1, min(int(top.group(1)), max_rows))

    single = symbol is not None or (_SINGLE_RE.search(text) and not _LIST_RE.search(text))
    if single:
        limit = 1
        columns.append("SUMMARY")

    plan = QueryPlan(
        columns=_dedupe(columns),
        filters=tuple(filters),
        sort=SortKey(sort_column),
        limit=limit,
        table=table,
    )
    logger.debug("Synthesized plan (rule=%s): %s", rule, plan.to_sql())
    return plan


# ── LLM-assisted synthesis ──

_FENCE_RE = re.compile(r"```(?:sql)?", re.IGNORECASE)
_WRITE_RE = re.compile(
    r"\b(insert|update|delete|drop|alter|create|grant|revoke|truncate|merge|call|copy)\b",
    re.IGNORECASE,
)
_LIMIT_RE = re.compile(
    r"\blimit\s+(\d+|all)(\s+offset\s+\d+(?:\s+rows?)?)?\s*$", re.IGNORECASE,
)
_FETCH_RE = re.compile(
    r"\bfetch\s+(first|next)\s+(\d+)\s+(rows?)\s+only\s*$", re.IGNORECASE,
)


def sanitize_generated_sql(raw: str) -> str:
    """Clean model output down to one read-only statement, or "" if unusable."""
    if not raw:
        return ""
    sql = _FENCE_RE.sub("", raw).replace("`", "").strip()
    if sql[:4].lower() == "sql\n" or sql[:4].lower() == "sql ":
        sql = sql[4:].strip()
    sql = sql.rstrip().rstrip(";").strip()
    if not sql or ";" in sql:
        return ""
    if not re.match(r"(select|with)\b", sql, re.IGNORECASE):
        return ""
    if _WRITE_RE.search(sql):
        return ""
    return sql


def bound_row_limit(sql: str, max_rows: int) -> str:
    """Clamp a trailing LIMIT/FETCH FIRST to ``max_rows``, or append one."""
    match = _LIMIT_RE.search(sql)
    if match:
        requested = match.group(1)
        rows = max_rows if requested.lower() == "all" else min(int(requested), max_rows)
        return f"{sql[:match.start()]}LIMIT {rows}{match.group(2) or ''}"
    match = _FETCH_RE.search(sql)
    if match:
        rows = min(int(match.group(2)), max_rows)
        return f"{sql[:match.start()]}FETCH {match.group(1)} {rows} {match.group(3)} ONLY"
    return f"{sql} LIMIT {max_rows}"


class LlmQuerySynthesizer:
    """Asks the text generator for SQL and sanitizes what comes back."""

    def __init__(self, generator: TextGenerator, table: str, max_rows: int = 10) -> None:
        self.generator = generator
        self.table = table
        self.max_rows = max_rows

    async def synthesize(self, question: str, conversation_context: str = "") -> str:
        prompt = build_sql_prompt(
            question=question,
            conversation=conversation_context,
            table=self.table,
            max_rows=self.max_rows,
        )
        raw = await self.generator.generate(prompt, quality="large")
        sql = sanitize_generated_sql(raw)
        if not sql:
            logger.warning("Generated SQL rejected: %r", (raw or "")[:200])
            raise QueryExecutionError("Generated SQL was empty or not a read-only query")
        return bound_row_limit(sql, self.max_rows)
