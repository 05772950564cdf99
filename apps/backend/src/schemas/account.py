"""Pydantic schemas for the chart of accounts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from src.models.account import AccountType
from src.schemas.base import BaseResponse, ListResponse


class ChartAccountResponse(BaseResponse):
    """Schema for a chart of accounts row."""

    id: UUID
    account_number: str
    name: str
    account_class: int
    account_type: AccountType
    parent_account_number: str | None = None
    is_system: bool
    is_active: bool
    description: str | None = None
    created_at: datetime


ChartAccountListResponse = ListResponse[ChartAccountResponse]


class ChartInitResponse(BaseModel):
    """Result of seeding the default chart."""

    created: int
    already_initialized: bool
