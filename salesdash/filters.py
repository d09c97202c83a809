from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

import pandas as pd


ALL = "All"

# Exact-match facets; ALL or "" means no restriction.
FACET_FIELDS = ["business_unit", "department", "salesperson", "category", "sub_category"]
# Case-sensitive substring filters.
TEXT_FIELDS = ["customer_name", "product_name"]


@dataclass(frozen=True)
class FilterState:
    start_year: Optional[int] = None
    start_month: int = 1
    end_year: Optional[int] = None
    end_month: int = 12
    business_unit: str = ALL
    department: str = ALL
    salesperson: str = ALL
    category: str = ALL
    sub_category: str = ALL
    customer_name: str = ""
    product_name: str = ""

    def start_key(self) -> Optional[int]:
        if self.start_year is None:
            return None
        return self.start_year * 100 + self.start_month

    def end_key(self) -> Optional[int]:
        if self.end_year is None:
            return None
        return self.end_year * 100 + self.end_month


def _as_int(value: object, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _clamp_month(value: object, default: int) -> int:
    month = _as_int(value, default)
    return max(1, min(12, month if month is not None else default))


def _facet(value: object) -> str:
    s = "" if value is None else str(value).strip()
    return s or ALL


def normalize_filters(raw: dict, *, available_years: Optional[Iterable[int]] = None) -> FilterState:
    available_years = sorted(available_years or [])
    latest = available_years[-1] if available_years else None

    return FilterState(
        start_year=_as_int(raw.get("start_year"), latest),
        start_month=_clamp_month(raw.get("start_month"), 1),
        end_year=_as_int(raw.get("end_year"), latest),
        end_month=_clamp_month(raw.get("end_month"), 12),
        business_unit=_facet(raw.get("business_unit")),
        department=_facet(raw.get("department")),
        salesperson=_facet(raw.get("salesperson")),
        category=_facet(raw.get("category")),
        sub_category=_facet(raw.get("sub_category")),
        customer_name=str(raw.get("customer_name") or "").strip(),
        product_name=str(raw.get("product_name") or "").strip(),
    )


def default_filters(available_years: Optional[Iterable[int]] = None, department: Optional[str] = None) -> FilterState:
    """Latest year, full calendar, no facets; department pre-selected for scoped sessions."""
    filters = normalize_filters({}, available_years=available_years)
    if department:
        filters = replace(filters, department=department)
    return filters


def filter_data(df: pd.DataFrame, filters: FilterState, dept_constraint: Optional[str] = None) -> pd.DataFrame:
    if df.empty:
        return df.copy()

    mask = pd.Series(True, index=df.index)
    period = df["year"].astype(int) * 100 + df["month"].astype(int)
    start, end = filters.start_key(), filters.end_key()
    if start is not None:
        mask &= period >= start
    if end is not None:
        mask &= period <= end

    # Applied on its own so no explicit department filter can widen it.
    if dept_constraint:
        mask &= df["department"] == dept_constraint

    for col in FACET_FIELDS:
        value = getattr(filters, col)
        if value and value != ALL:
            mask &= df[col] == value

    for col in TEXT_FIELDS:
        query = getattr(filters, col)
        if query:
            mask &= df[col].astype(str).str.contains(query, regex=False, na=False)

    return df[mask].copy()


def filter_options(df: pd.DataFrame, dept_constraint: Optional[str] = None) -> Dict[str, List[str]]:
    """Distinct facet values for the selectors, restricted to the session's department."""
    cols = FACET_FIELDS + ["customer_name"]
    if df.empty:
        return {col: [] for col in cols}
    base = df[df["department"] == dept_constraint] if dept_constraint else df
    out: Dict[str, List[str]] = {}
    for col in cols:
        values = base[col].dropna().astype(str)
        out[col] = sorted(v for v in values.unique().tolist() if v)
    return out
