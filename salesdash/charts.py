from __future__ import annotations

from typing import Any, Dict, List, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

PALETTE = ["#6366f1", "#8b5cf6", "#ec4899", "#f43f5e", "#f97316", "#eab308", "#10b981", "#06b6d4", "#3b82f6"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def trend_chart(points: Sequence[Any], years: List[str]) -> alt.Chart:
    """Month-on-x, one line per year."""
    rows = [
        {"month": p.label, "year": year, "amount": float(p.values.get(year, 0.0))}
        for p in points
        for year in years
    ]
    src = pd.DataFrame(rows, columns=["month", "year", "amount"])
    hover = alt.selection_point(fields=["year"], on="mouseover", empty="all")
    return (
        alt.Chart(src)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("month:O", title="Month", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("amount:Q", title="Amount (¥)", axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("year:N", title="Year", scale=alt.Scale(range=PALETTE)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["year", "month", alt.Tooltip("amount:Q", format=",.2f")],
        )
        .add_params(hover)
        .properties(height=280)
    )


def share_chart(points: Sequence[Any], *, inner_radius: int = 50) -> alt.Chart:
    src = pd.DataFrame(
        [{"name": p.name, "value": p.value, "percentage": p.percentage} for p in points],
        columns=["name", "value", "percentage"],
    )
    return (
        alt.Chart(src)
        .mark_arc(innerRadius=inner_radius)
        .encode(
            theta=alt.Theta("value:Q", stack=True),
            color=alt.Color("name:N", title=None, sort=None, scale=alt.Scale(range=PALETTE)),
            tooltip=["name", alt.Tooltip("value:Q", format=",.2f"), alt.Tooltip("percentage:Q", format=".2f")],
        )
        .properties(height=260)
    )


def ranking_chart(points: Sequence[Any], *, top_n: int = 10) -> alt.Chart:
    src = pd.DataFrame(
        [{"name": p.name, "value": p.value, "percentage": p.percentage} for p in list(points)[:top_n]],
        columns=["name", "value", "percentage"],
    )
    return (
        alt.Chart(src)
        .mark_bar(cornerRadiusEnd=4)
        .encode(
            x=alt.X("value:Q", title="Amount (¥)", axis=alt.Axis(format="~s")),
            y=alt.Y("name:N", title=None, sort="-x"),
            tooltip=["name", alt.Tooltip("value:Q", format=",.2f"), alt.Tooltip("percentage:Q", format=".2f")],
        )
        .properties(height=260)
    )
