from datetime import datetime
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


TransactionSortField = Literal["category_name", "amount", "transaction_date"]
CategorySortField = Literal["name", "max_spend_limit"]
SortDirection = Literal["asc", "desc"]


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    max_spend_limit_cents: Optional[int] = Field(default=None, gt=0)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    # null clears the limit
    max_spend_limit_cents: Optional[int] = Field(default=None, gt=0)

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("name cannot be null")
        return value

    @model_validator(mode="after")
    def require_a_field(self) -> "CategoryUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be updated.")
        return self


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    max_spend_limit_cents: Optional[int]


class TransactionIn(BaseModel):
    category_id: int = Field(..., gt=0)
    amount_cents: int = Field(..., gt=0)
    transaction_date: Optional[datetime] = None


class TransactionUpdate(BaseModel):
    category_id: Optional[int] = Field(default=None, gt=0)
    amount_cents: Optional[int] = Field(default=None, gt=0)
    transaction_date: Optional[datetime] = None

    @field_validator("category_id", "amount_cents", "transaction_date")
    @classmethod
    def fields_not_null(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @model_validator(mode="after")
    def require_a_field(self) -> "TransactionUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be updated.")
        return self


class TransactionOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    category_id: Optional[int]
    category_name: Optional[str]
    max_spend_limit_cents: Optional[int]
    amount_cents: int
    transaction_date: datetime


class CategorySummaryOut(BaseModel):
    name: str
    total_spent_cents: int
    limit_cents: Optional[int]
    over_limit: bool


class SpendingSummaryOut(BaseModel):
    window: str
    now: datetime
    items: list[CategorySummaryOut]


class ChartSeriesOut(BaseModel):
    window: str
    labels: list[str]
    totals_cents: list[int]
    over_limit: dict[str, bool]
