# -*- coding: utf-8 -*-

"""Built-in static lookup sources.

Static sources have no backing form or module; their rows are baked in
and served without touching the database.
"""

from typing import Any, Dict, List, NamedTuple, Optional


class StaticSource(NamedTuple):
    id: str
    name: str
    description: str
    columns: List[str]
    rows: List[Dict[str, Any]]

    @property
    def record_count(self) -> int:
        return len(self.rows)


def _rows(columns: List[str], *values: tuple) -> List[Dict[str, Any]]:
    rows = []
    for row_values in values:
        row = dict(zip(columns, row_values))
        row["label"] = row.get("label", row["name"])
        row["value"] = row["id"]
        rows.append(row)
    return rows


COUNTRIES = StaticSource(
    id="countries",
    name="Countries",
    description="World countries with codes and regions",
    columns=["id", "name", "label", "code", "region"],
    rows=_rows(
        ["id", "name", "code", "region"],
        ("us", "United States", "US", "North America"),
        ("ca", "Canada", "CA", "North America"),
        ("uk", "United Kingdom", "GB", "Europe"),
        ("de", "Germany", "DE", "Europe"),
        ("fr", "France", "FR", "Europe"),
        ("jp", "Japan", "JP", "Asia"),
        ("au", "Australia", "AU", "Oceania"),
        ("in", "India", "IN", "Asia"),
        ("br", "Brazil", "BR", "South America"),
        ("mx", "Mexico", "MX", "North America"),
        ("cn", "China", "CN", "Asia"),
        ("ru", "Russia", "RU", "Europe/Asia"),
        ("za", "South Africa", "ZA", "Africa"),
        ("eg", "Egypt", "EG", "Africa"),
        ("ng", "Nigeria", "NG", "Africa"),
    ),
)

CURRENCIES = StaticSource(
    id="currencies",
    name="Currencies",
    description="World currencies with symbols",
    columns=["id", "name", "label", "code", "symbol"],
    rows=_rows(
        ["id", "name", "label", "code", "symbol"],
        ("usd", "US Dollar", "US Dollar (USD)", "USD", "$"),
        ("eur", "Euro", "Euro (EUR)", "EUR", "€"),
        ("gbp", "British Pound", "British Pound (GBP)", "GBP", "£"),
        ("jpy", "Japanese Yen", "Japanese Yen (JPY)", "JPY", "¥"),
        ("cad", "Canadian Dollar", "Canadian Dollar (CAD)", "CAD", "C$"),
        ("aud", "Australian Dollar", "Australian Dollar (AUD)", "AUD", "A$"),
        ("chf", "Swiss Franc", "Swiss Franc (CHF)", "CHF", "CHF"),
        ("cny", "Chinese Yuan", "Chinese Yuan (CNY)", "CNY", "¥"),
        ("inr", "Indian Rupee", "Indian Rupee (INR)", "INR", "₹"),
        ("brl", "Brazilian Real", "Brazilian Real (BRL)", "BRL", "R$"),
    ),
)

PRIORITIES = StaticSource(
    id="priorities",
    name="Priorities",
    description="Task and project priorities",
    columns=["id", "name", "label", "level", "color"],
    rows=_rows(
        ["id", "name", "level", "color"],
        ("critical", "Critical", 5, "#dc2626"),
        ("high", "High", 4, "#ea580c"),
        ("medium", "Medium", 3, "#ca8a04"),
        ("low", "Low", 2, "#16a34a"),
        ("minimal", "Minimal", 1, "#6b7280"),
    ),
)

STATUSES = StaticSource(
    id="statuses",
    name="Status Options",
    description="Common status values",
    columns=["id", "name", "label", "color"],
    rows=_rows(
        ["id", "name", "color"],
        ("active", "Active", "#16a34a"),
        ("inactive", "Inactive", "#6b7280"),
        ("pending", "Pending", "#ca8a04"),
        ("approved", "Approved", "#16a34a"),
        ("rejected", "Rejected", "#dc2626"),
        ("draft", "Draft", "#6b7280"),
        ("published", "Published", "#2563eb"),
        ("archived", "Archived", "#6b7280"),
        ("in_progress", "In Progress", "#2563eb"),
        ("completed", "Completed", "#16a34a"),
    ),
)

##
# STATIC_SOURCES
#
# The built-in static sources, keyed by source id.
#
STATIC_SOURCES: Dict[str, StaticSource] = {
    source.id: source for source in (COUNTRIES, CURRENCIES, PRIORITIES, STATUSES)
}


def get_static_source(source_id: str) -> Optional[StaticSource]:
    return STATIC_SOURCES.get(source_id)
