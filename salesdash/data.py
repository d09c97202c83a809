from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from salesdash.categories import CategoryRule, classify
from salesdash.errors import IngestionError


logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "未知客户"
UNKNOWN_PRODUCT = "未知商品"

# Excel's day zero (1900 date system, including the 1900 leap-year bug).
EXCEL_EPOCH = pd.Timestamp("1899-12-30")
# Larger numbers are read as yyyymmdd-style codes rather than serial days.
MAX_EXCEL_SERIAL = 100000

STRING_COLUMNS = [
    "business_unit",
    "department",
    "salesperson",
    "date",
    "customer_name",
    "company_name",
    "sku",
    "product_name",
]
NUMERIC_COLUMNS = ["quantity", "amount"]
RAW_COLUMNS = STRING_COLUMNS + NUMERIC_COLUMNS
ENRICHED_COLUMNS = RAW_COLUMNS + ["category", "sub_category", "year", "month"]


@dataclass(frozen=True)
class FieldRule:
    target: str
    candidates: Tuple[str, ...]
    default: Any = ""


# Evaluated in order; the first candidate key holding a non-empty value wins.
FIELD_RULES: List[FieldRule] = [
    FieldRule("business_unit", ("事业部", "businessUnit", "business_unit")),
    FieldRule("department", ("部门", "department")),
    FieldRule("salesperson", ("业务员", "salesperson")),
    FieldRule("date", ("发货日期", "date"), None),
    FieldRule("customer_name", ("客户名称", "customerName", "customer_name"), UNKNOWN_CUSTOMER),
    FieldRule("company_name", ("总公司名称", "companyName", "company_name")),
    FieldRule("sku", ("单品编码", "sku")),
    FieldRule("product_name", ("单品名称", "productName", "product_name"), UNKNOWN_PRODUCT),
    FieldRule("quantity", ("发货数量", "quantity"), 0),
    FieldRule("amount", ("发货含税金额本币（元）", "发货含税金额本币(元)", "amount"), None),
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    if value is pd.NaT or value is pd.NA:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def pick_field(row: Mapping[str, Any], rule: FieldRule) -> Any:
    for key in rule.candidates:
        if key in row and not _is_blank(row[key]):
            return row[key]
    return rule.default


def coerce_date_str(value: Any, *, today: Optional[date] = None) -> str:
    """Normalize a loosely typed date value to ``YYYY-MM-DD``.

    Accepts native dates, ISO strings, Mongo ``{"$date": ...}`` wrappers and
    Excel serial day numbers. Anything else becomes today's date.
    """
    fallback = (today or date.today()).isoformat()
    if isinstance(value, Mapping):
        value = value.get("$date")
        if isinstance(value, Mapping):
            value = value.get("$numberLong")
        if isinstance(value, (float, np.floating)) and float(value).is_integer():
            value = int(value)
        if isinstance(value, (int, np.integer, str)) and str(value).lstrip("-").isdigit():
            ts = pd.to_datetime(int(value), unit="ms", errors="coerce")
            return fallback if pd.isna(ts) else ts.strftime("%Y-%m-%d")
    if _is_blank(value):
        return fallback
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        if 1 <= float(value) <= MAX_EXCEL_SERIAL:
            ts = EXCEL_EPOCH + pd.to_timedelta(float(value), unit="D")
            return ts.strftime("%Y-%m-%d")
        value = _to_text(value)
    text = str(value).strip().split("T")[0].split(" ")[0]
    ts = pd.to_datetime(text, errors="coerce")
    if pd.isna(ts):
        return fallback
    return ts.strftime("%Y-%m-%d")


def _to_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def _to_number(value: Any) -> Optional[float]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").replace("¥", "").strip()
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if np.isnan(out) or np.isinf(out):
        return None
    return out


def map_raw_record(row: Mapping[str, Any], *, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
    """Map one loosely keyed source row to a RawRecord dict, or None when it has no usable amount."""
    out: Dict[str, Any] = {}
    for rule in FIELD_RULES:
        out[rule.target] = pick_field(row, rule)

    amount = _to_number(out["amount"])
    if amount is None:
        return None
    out["amount"] = amount
    out["quantity"] = _to_number(out["quantity"]) or 0.0
    out["date"] = coerce_date_str(out["date"], today=today)
    for col in STRING_COLUMNS:
        if col != "date":
            out[col] = _to_text(out[col])
    return out


def map_raw_records(rows: Iterable[Mapping[str, Any]], *, today: Optional[date] = None) -> pd.DataFrame:
    records: List[Dict[str, Any]] = []
    dropped = 0
    for row in rows:
        if not isinstance(row, Mapping):
            dropped += 1
            continue
        mapped = map_raw_record(row, today=today)
        if mapped is None:
            dropped += 1
            continue
        records.append(mapped)
    if dropped:
        logger.warning("Dropped %d rows without a usable amount", dropped)
    if not records:
        raise IngestionError(
            "No valid records found. Check the field names (e.g. 单品名称, 发货日期, 发货含税金额本币（元）)."
        )
    return pd.DataFrame.from_records(records, columns=RAW_COLUMNS)


def _json_rows(content: bytes) -> List[Any]:
    try:
        payload = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise IngestionError("Failed to parse JSON file.") from exc
    if not isinstance(payload, list):
        raise IngestionError("JSON file must contain an array of records.")
    return payload


def _excel_rows(content: bytes) -> List[Dict[str, Any]]:
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    except Exception as exc:
        raise IngestionError("Failed to parse Excel file; make sure it is not encrypted and is well formed.") from exc
    df.columns = [str(c).strip() for c in df.columns]
    df = df.dropna(how="all")
    return df.to_dict(orient="records")


def read_records_file(content: bytes, filename: str, *, today: Optional[date] = None) -> pd.DataFrame:
    """Parse an uploaded ``.json``/``.xlsx``/``.xls`` file into a RawRecord frame."""
    suffix = Path(filename or "").suffix.lower()
    if suffix == ".json":
        rows = _json_rows(content)
    elif suffix in {".xlsx", ".xls"}:
        rows = _excel_rows(content)
    else:
        raise IngestionError("Unsupported file format. Upload a .json, .xlsx or .xls file.")
    raw = map_raw_records(rows, today=today)
    logger.info("Parsed %d records from %s", len(raw), filename)
    return raw


def load_records_path(path: Path) -> pd.DataFrame:
    return read_records_file(path.read_bytes(), path.name)


# ---------------- Normalizer ----------------
def process_data(raw: pd.DataFrame, rules: Optional[Sequence[CategoryRule]] = None) -> pd.DataFrame:
    """Attach category/sub_category and calendar year/month to every raw record."""
    df = raw.copy()
    if df.empty:
        return pd.DataFrame(columns=ENRICHED_COLUMNS)
    pairs = [classify(name, rules) for name in df["product_name"].astype(str)]
    df["category"] = [p[0] for p in pairs]
    df["sub_category"] = [p[1] for p in pairs]
    dates = pd.to_datetime(df["date"].astype(str), format="%Y-%m-%d", errors="coerce")
    bad = dates.isna()
    if bad.any():
        today = pd.Timestamp(date.today())
        logger.warning("Replacing %d malformed dates with %s", int(bad.sum()), today.date().isoformat())
        dates = dates.where(~bad, today)
        df.loc[bad, "date"] = today.strftime("%Y-%m-%d")
    df["year"] = dates.dt.year.astype("int64")
    df["month"] = dates.dt.month.astype("int64")
    return df[ENRICHED_COLUMNS + [c for c in df.columns if c not in ENRICHED_COLUMNS]]


def get_available_years(df: pd.DataFrame) -> List[int]:
    if df.empty or "year" not in df.columns:
        return []
    return sorted(int(y) for y in df["year"].dropna().unique())


def format_wan(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"¥{float(value) / 10000:.2f}万"
