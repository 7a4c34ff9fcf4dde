"""
Transaction Model.

Pydantic models for income and expense transactions.  Every transaction
belongs to exactly one category of the same type.
"""

from __future__ import annotations
from datetime import date as Date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.category import CategorySummary
from app.models.enums import TransactionType
from app.models.fields import Money, UuidStr


class Transaction(BaseModel):
    """Represents a transaction record as stored."""

    id: str
    type: TransactionType
    amount: Decimal
    description: str
    category_id: str
    date: Date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated by the repository when the category is requested
    category: Optional[CategorySummary] = None

    model_config = {"from_attributes": True}


class TransactionCreate(BaseModel):
    """Validated payload for creating a transaction."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Money
    description: str = Field(min_length=1, max_length=200)
    category_id: UuidStr
    date: Date


class TransactionUpdate(BaseModel):
    """Partial update; only the fields present in the request are applied."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: Optional[TransactionType] = None
    amount: Optional[Money] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category_id: Optional[UuidStr] = None
    date: Optional[Date] = None

    @model_validator(mode="after")
    def _require_one_field(self) -> "TransactionUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        for field_name in self.model_fields_set:
            if getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    def changes(self) -> dict[str, object]:
        return self.model_dump(include=self.model_fields_set)


class TransactionBulkUpdate(TransactionUpdate):
    """One item of a bulk update request."""

    id: UuidStr

    def changes(self) -> dict[str, object]:
        return self.model_dump(include=self.model_fields_set - {"id"})
