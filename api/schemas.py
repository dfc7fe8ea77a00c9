from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SignUpModel(BaseModel):
    email: str
    password: str
    role: Literal["buyer", "seller"] = "buyer"


class SignInModel(BaseModel):
    email: str
    password: str


class ProductCreateModel(BaseModel):
    title: str
    description: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    unit: str
    category: str
    specifications: str = ""


class RequestCreateModel(BaseModel):
    title: str
    description: str
    budget: float = Field(ge=0)
    quantity: int = Field(ge=1)
    unit: str
    category: str
    specifications: str = ""
    delivery_date: date


class MatchCreateModel(BaseModel):
    product_id: str
    request_id: str
    fee: float = Field(ge=0)


class MatchStatusModel(BaseModel):
    status: Literal["pending", "accepted", "completed"]


class MatchFiltersModel(BaseModel):
    search_term: str = ""
    category: str = ""
    status: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None

