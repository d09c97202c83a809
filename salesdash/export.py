from __future__ import annotations

import csv
from datetime import date
from typing import List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from salesdash.metrics import AggregatedPoint


BOM = "\ufeff"
VALUE_COLUMN = "销售金额(元)"
SHARE_COLUMN = "占比"
RANK_COLUMN = "排名"

# (section title, aggregated field, name column header)
SUMMARY_SECTIONS: List[Tuple[str, str, str]] = [
    ("部门销售占比", "department", "部门"),
    ("业务员业绩排名", "salesperson", "业务员"),
    ("品类销售占比", "category", "品类"),
    ("小分类销售排行", "sub_category", "小分类"),
    ("客户贡献排名", "customer_name", "客户名称"),
    ("单品销售排名", "product_name", "单品名称"),
]


def csv_amount(value: float) -> Union[int, float]:
    # Whole amounts are written without a trailing ".0".
    value = float(value)
    return int(value) if value.is_integer() else value


def section_frame(points: Sequence[AggregatedPoint]) -> pd.DataFrame:
    rows = [
        [rank, str(p.name), csv_amount(p.value), f"{p.percentage:.2f}%"]
        for rank, p in enumerate(points, start=1)
    ]
    return pd.DataFrame(rows, columns=["rank", "name", "value", "share"], dtype=object)


def format_section(title: str, name_column: str, points: Sequence[AggregatedPoint]) -> str:
    header = ",".join([RANK_COLUMN, name_column, VALUE_COLUMN, SHARE_COLUMN])
    body = ""
    if points:
        body = section_frame(points).to_csv(
            header=False,
            index=False,
            quoting=csv.QUOTE_NONNUMERIC,
            lineterminator="\n",
        )
    return f"{title}\n{header}\n{body}\n\n"


def build_summary_csv(stats: Mapping[str, Sequence[AggregatedPoint]]) -> str:
    """Six ranked sections in one BOM-prefixed CSV document (opens cleanly in Excel)."""
    parts = [BOM]
    for title, field_name, name_column in SUMMARY_SECTIONS:
        parts.append(format_section(title, name_column, stats.get(field_name, [])))
    return "".join(parts)


def summary_filename(today: Optional[date] = None) -> str:
    return f"sales_summary_report_{(today or date.today()).isoformat()}.csv"
