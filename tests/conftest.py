"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Keep the project root importable (salesdash / api live at the top level).
_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from salesdash.data import RAW_COLUMNS, process_data  # noqa: E402


def make_raw(rows):
    """Build a RawRecord frame; unspecified fields get neutral values."""
    base = {
        "business_unit": "华东事业部",
        "department": "Sales-A",
        "salesperson": "张伟",
        "date": "2023-01-15",
        "customer_name": "联华超市上海店",
        "company_name": "联华超市集团",
        "sku": "SP-1",
        "product_name": "金标生抽酱油500ml",
        "quantity": 1.0,
        "amount": 100.0,
    }
    return pd.DataFrame([{**base, **r} for r in rows], columns=RAW_COLUMNS)


@pytest.fixture
def sample_raw() -> pd.DataFrame:
    return make_raw(
        [
            {"date": "2023-02-10", "department": "Sales-A", "salesperson": "张伟", "product_name": "金标生抽酱油500ml", "amount": 100.0},
            {"date": "2023-03-01", "department": "Sales-A", "salesperson": "王芳", "product_name": "压榨花生油5L", "amount": 300.0},
            {"date": "2023-04-20", "department": "Sales-B", "salesperson": "李娜", "product_name": "鲜味蚝油700g", "amount": 200.0, "customer_name": "永辉超市福州店"},
            {"date": "2023-05-31", "department": "Sales-B", "salesperson": "李娜", "product_name": "Premium Soy Sauce", "amount": 50.0, "business_unit": "华南事业部"},
            {"date": "2023-06-01", "department": "Sales-A", "salesperson": "张伟", "product_name": "SOY SAUCE", "amount": 25.0},
            {"date": "2022-03-15", "department": "Sales-A", "salesperson": "张伟", "product_name": "山西陈醋500ml", "amount": 80.0},
        ]
    )


@pytest.fixture
def sample_data(sample_raw) -> pd.DataFrame:
    return process_data(sample_raw)


@pytest.fixture
def raw_factory():
    return make_raw
