from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from salesdash.data import RAW_COLUMNS


BUSINESS_UNITS: Dict[str, List[str]] = {
    "华东事业部": ["上海销售部", "江苏销售部", "浙江销售部"],
    "华南事业部": ["广东销售部", "福建销售部"],
    "华北事业部": ["北京销售部", "山东销售部"],
}

SALESPEOPLE: Dict[str, List[str]] = {
    "上海销售部": ["张伟", "王芳"],
    "江苏销售部": ["李娜", "刘洋"],
    "浙江销售部": ["陈静", "杨帆"],
    "广东销售部": ["黄磊", "周敏"],
    "福建销售部": ["吴强", "郑丽"],
    "北京销售部": ["孙浩", "马超"],
    "山东销售部": ["朱琳", "胡军"],
}

CUSTOMERS = [
    ("联华超市上海店", "联华超市集团"),
    ("联华超市杭州店", "联华超市集团"),
    ("永辉超市福州店", "永辉超市股份"),
    ("永辉超市北京店", "永辉超市股份"),
    ("华润万家深圳店", "华润万家"),
    ("华润万家南京店", "华润万家"),
    ("物美超市北京店", "物美集团"),
    ("大润发济南店", "高鑫零售"),
    ("盒马鲜生上海店", "阿里巴巴"),
    ("家家悦烟台店", "家家悦集团"),
]

# (sku, product name, unit price in yuan)
PRODUCTS = [
    ("SP-1001", "金标生抽酱油500ml", 12.5),
    ("SP-1002", "红烧老抽酱油500ml", 13.8),
    ("SP-1003", "鲜味蚝油700g", 15.9),
    ("SP-1004", "山西陈醋500ml", 9.9),
    ("SP-1005", "黄酒料酒500ml", 8.5),
    ("SP-1006", "鸡精调味料200g", 11.0),
    ("SP-1007", "香辣辣椒酱230g", 10.5),
    ("SP-1008", "郫县豆瓣酱500g", 14.2),
    ("SP-1009", "东北黄豆酱350g", 9.6),
    ("SP-1010", "芝麻沙拉酱200g", 16.8),
    ("SP-1011", "压榨花生油5L", 129.0),
    ("SP-1012", "非转基因菜籽油5L", 89.0),
    ("SP-1013", "食用调和油5L", 69.0),
    ("SP-1014", "五常大米10kg", 88.0),
    ("SP-1015", "高筋面粉5kg", 32.0),
    ("SP-1016", "鸡蛋挂面1kg", 12.0),
    ("SP-1017", "精制食用盐400g", 3.0),
    ("SP-1018", "一级白砂糖1kg", 9.8),
    ("SP-1019", "什锦礼盒", 158.0),
]


def default_years(today: Optional[date] = None) -> List[int]:
    current = (today or date.today()).year
    return [current - 2, current - 1, current]


def generate_mock_data(count: int = 1000, *, seed: Optional[int] = None, years: Optional[Sequence[int]] = None) -> pd.DataFrame:
    """Generate ``count`` random shipment lines shaped like an imported file."""
    rng = np.random.default_rng(seed)
    years = list(years) if years else default_years()
    units = list(BUSINESS_UNITS)

    rows = []
    for _ in range(max(0, int(count))):
        unit = units[rng.integers(len(units))]
        depts = BUSINESS_UNITS[unit]
        dept = depts[rng.integers(len(depts))]
        people = SALESPEOPLE[dept]
        customer, company = CUSTOMERS[rng.integers(len(CUSTOMERS))]
        sku, product, price = PRODUCTS[rng.integers(len(PRODUCTS))]
        year = int(years[rng.integers(len(years))])
        month = int(rng.integers(1, 13))
        day = int(rng.integers(1, 29))
        quantity = int(rng.integers(10, 500))
        rows.append(
            {
                "business_unit": unit,
                "department": dept,
                "salesperson": people[rng.integers(len(people))],
                "date": f"{year:04d}-{month:02d}-{day:02d}",
                "customer_name": customer,
                "company_name": company,
                "sku": sku,
                "product_name": product,
                "quantity": float(quantity),
                "amount": round(quantity * price, 2),
            }
        )
    return pd.DataFrame.from_records(rows, columns=RAW_COLUMNS)
