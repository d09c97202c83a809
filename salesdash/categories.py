from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd


logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "未分类"
DEFAULT_SUB_CATEGORY = "其他"


@dataclass(frozen=True)
class CategoryRule:
    keyword: str
    category: str
    sub_category: str


# Order matters: the first keyword contained in the product name wins,
# so compound names ("蚝油", "辣椒酱") must precede their generic suffixes.
CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule("蚝油", "调味品", "蚝油"),
    CategoryRule("酱油", "调味品", "酱油"),
    CategoryRule("生抽", "调味品", "酱油"),
    CategoryRule("老抽", "调味品", "酱油"),
    CategoryRule("醋", "调味品", "食醋"),
    CategoryRule("料酒", "调味品", "料酒"),
    CategoryRule("鸡精", "调味品", "鸡精味精"),
    CategoryRule("味精", "调味品", "鸡精味精"),
    CategoryRule("辣椒酱", "酱类", "辣椒酱"),
    CategoryRule("豆瓣酱", "酱类", "豆瓣酱"),
    CategoryRule("黄豆酱", "酱类", "黄豆酱"),
    CategoryRule("酱", "酱类", "其他酱料"),
    CategoryRule("花生油", "食用油", "花生油"),
    CategoryRule("菜籽油", "食用油", "菜籽油"),
    CategoryRule("调和油", "食用油", "调和油"),
    CategoryRule("油", "食用油", "其他油品"),
    CategoryRule("大米", "粮食", "大米"),
    CategoryRule("面粉", "粮食", "面粉"),
    CategoryRule("挂面", "粮食", "面条"),
    CategoryRule("盐", "调味品", "食盐"),
    CategoryRule("糖", "调味品", "食糖"),
]

RULE_COLUMNS = {
    "keyword": "keyword",
    "关键词": "keyword",
    "关键字": "keyword",
    "category": "category",
    "品类": "category",
    "大类": "category",
    "sub_category": "sub_category",
    "subcategory": "sub_category",
    "sub category": "sub_category",
    "小分类": "sub_category",
    "小类": "sub_category",
}


def classify(product_name: Optional[str], rules: Optional[Sequence[CategoryRule]] = None) -> Tuple[str, str]:
    """Return the (category, sub_category) of the first rule whose keyword is in ``product_name``."""
    if not product_name:
        return DEFAULT_CATEGORY, DEFAULT_SUB_CATEGORY
    for rule in CATEGORY_RULES if rules is None else rules:
        if rule.keyword and rule.keyword in product_name:
            return rule.category, rule.sub_category
    return DEFAULT_CATEGORY, DEFAULT_SUB_CATEGORY


def load_category_rules(path: Optional[Path]) -> List[CategoryRule]:
    """Read an ordered rule table from CSV/XLSX; falls back to the built-in rules."""
    if path is None or not path.exists():
        return list(CATEGORY_RULES)
    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        df = pd.read_excel(path, dtype=str, engine="openpyxl")
    else:
        df = pd.read_csv(path, dtype=str, encoding="utf-8-sig")

    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns=RULE_COLUMNS)
    required = {"keyword", "category", "sub_category"}
    if not required.issubset(df.columns):
        logger.warning("Rule file %s lacks columns %s; using built-in rules", path, sorted(required - set(df.columns)))
        return list(CATEGORY_RULES)

    df = df[["keyword", "category", "sub_category"]].fillna("")
    rules = [
        CategoryRule(str(r.keyword).strip(), str(r.category).strip(), str(r.sub_category).strip())
        for r in df.itertuples(index=False)
        if str(r.keyword).strip()
    ]
    logger.info("Loaded %d category rules from %s", len(rules), path)
    return rules
