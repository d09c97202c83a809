from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from salesdash.filters import ALL


class FilterStateModel(BaseModel):
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


class LoginRequest(BaseModel):
    username: str
    password: str

