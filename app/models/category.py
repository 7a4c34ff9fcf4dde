"""
Category Model.

Pydantic models for spending/income categories.  Categories form an
optional hierarchy through ``parent_id`` and share their type with the
transactions filed under them.
"""

from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import CategoryType
from app.models.fields import HexColor, UuidStr


class Category(BaseModel):
    """Represents a category record as stored."""

    id: str
    name: str
    type: CategoryType
    color: str = "#95A5A6"
    icon: str = "ellipsis-h"
    description: Optional[str] = None
    parent_id: Optional[str] = None
    is_active: bool = True
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategorySummary(BaseModel):
    """Embedded category shape attached to transactions and budgets."""

    id: str
    name: str
    type: CategoryType
    color: str
    icon: str

    model_config = {"from_attributes": True}


class CategoryNode(Category):
    """A category with its nested children, used by the hierarchy view."""

    children: list[CategoryNode] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------

class CategoryCreate(BaseModel):
    """Validated payload for creating a category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=50)
    type: CategoryType
    color: HexColor
    icon: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    parent_id: Optional[UuidStr] = None


class CategoryUpdate(BaseModel):
    """Partial update; only the fields present in the request are applied."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    type: Optional[CategoryType] = None
    color: Optional[HexColor] = None
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    parent_id: Optional[UuidStr] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _require_one_field(self) -> "CategoryUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        nullable = {"description", "parent_id"}
        for field_name in self.model_fields_set - nullable:
            if getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    def changes(self) -> dict[str, object]:
        """Fields the caller actually sent, including explicit nulls."""
        return self.model_dump(include=self.model_fields_set)
