from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd

from salesdash.charts import ranking_chart, share_chart, to_vega_spec, trend_chart
from salesdash.data import get_available_years
from salesdash.filters import FilterState, filter_data, filter_options
from salesdash.session import UserSession


ADMIN_STAT_FIELDS = ["department", "salesperson", "category", "sub_category", "customer_name", "product_name"]
DEPARTMENT_STAT_FIELDS = ["salesperson", "category", "sub_category", "customer_name", "product_name"]
MONTHS = [f"{m:02d}" for m in range(1, 13)]
PAGE_SIZE = 8


@dataclass(frozen=True)
class AggregatedPoint:
    name: str
    value: float
    percentage: float


@dataclass(frozen=True)
class TrendPoint:
    month: str
    values: Dict[str, float] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.month}月"


def aggregate_by_field(df: pd.DataFrame, field_name: str) -> List[AggregatedPoint]:
    """Sum ``amount`` per value of ``field_name``, ranked descending with share of the grand total."""
    if df.empty or field_name not in df.columns:
        return []
    keys = df[field_name].astype(str)
    grouped = df["amount"].astype(float).groupby(keys, sort=True).sum()
    total = float(df["amount"].sum())
    # Stable sort over key-ordered groups: ties stay in ascending key order.
    ranked = grouped.sort_values(ascending=False, kind="mergesort")
    return [
        AggregatedPoint(
            name=str(name),
            value=float(value),
            percentage=(float(value) / total * 100) if total > 0 else 0.0,
        )
        for name, value in ranked.items()
    ]


def get_trend_data(df: pd.DataFrame) -> Tuple[List[TrendPoint], List[str]]:
    """Month x year amount matrix; all twelve months and every discovered year are always present."""
    years = [str(y) for y in get_available_years(df)]
    if df.empty:
        return [TrendPoint(month=m, values={}) for m in MONTHS], years

    matrix = (
        df.assign(year_key=df["year"].astype(int).astype(str), month_num=df["month"].astype(int))
        .groupby(["month_num", "year_key"])["amount"]
        .sum()
        .unstack(fill_value=0.0)
        .reindex(index=range(1, 13), columns=years, fill_value=0.0)
        .fillna(0.0)
    )
    points = [
        TrendPoint(month=f"{month:02d}", values={year: float(matrix.at[month, year]) for year in years})
        for month in range(1, 13)
    ]
    return points, years


def annual_totals(df: pd.DataFrame) -> Dict[str, float]:
    if df.empty:
        return {}
    totals = df.groupby(df["year"].astype(int))["amount"].sum().sort_index()
    return {str(year): float(value) for year, value in totals.items()}


def paginate(points: Sequence[AggregatedPoint], page: int = 1, page_size: int = PAGE_SIZE) -> Dict[str, Any]:
    page_size = max(1, int(page_size))
    total_pages = max(1, math.ceil(len(points) / page_size))
    page = max(1, min(total_pages, int(page)))
    start = (page - 1) * page_size
    rows = [
        {"rank": start + idx + 1, **asdict(point)}
        for idx, point in enumerate(points[start : start + page_size])
    ]
    return {"page": page, "page_size": page_size, "total_pages": total_pages, "total_items": len(points), "rows": rows}


def stat_fields_for(session: UserSession) -> List[str]:
    return ADMIN_STAT_FIELDS if session.is_admin else DEPARTMENT_STAT_FIELDS


def compute_dashboard(filters: FilterState, session: UserSession, data: pd.DataFrame) -> Dict[str, Any]:
    filtered = filter_data(data, filters, session.department_filter)

    stats = {name: aggregate_by_field(filtered, name) for name in stat_fields_for(session)}
    points, years = get_trend_data(filtered)
    categories = stats.get("category") or []

    kpis = {
        "total_amount": float(filtered["amount"].sum()) if not filtered.empty else 0.0,
        "total_quantity": float(filtered["quantity"].sum()) if not filtered.empty else 0.0,
        "record_count": int(len(filtered)),
        "top_category": categories[0].name if categories else None,
    }

    charts: Dict[str, Any] = {"trend": to_vega_spec(trend_chart(points, years))}
    if categories:
        charts["category_share"] = to_vega_spec(share_chart(categories))
    if stats.get("department"):
        charts["department_share"] = to_vega_spec(share_chart(stats["department"], inner_radius=60))
    if stats.get("salesperson"):
        charts["salesperson_ranking"] = to_vega_spec(ranking_chart(stats["salesperson"]))

    return {
        "filters": asdict(filters),
        "session": {"role": session.role, "username": session.username, "department": session.department_filter},
        "kpis": kpis,
        "stats": {name: [asdict(p) for p in points_] for name, points_ in stats.items()},
        "trend": {
            "points": [{"month": p.month, "label": p.label, "values": p.values} for p in points],
            "years": years,
            "annual_totals": annual_totals(filtered),
        },
        "charts": charts,
        "options": filter_options(data, session.department_filter),
        "available_years": get_available_years(data),
    }
