# app/schemas.py
"""
Request bodies.

Field presence and basic types are checked here; business rules (positive
amounts, ownership, balances) live in the services so every caller gets them.
Transactions and daily assets use snake_case keys, wallet transfers and
savings goals use camelCase, matching what the frontend sends.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TransactionCreate(BaseModel):
    description: str
    amount: Decimal
    type: str
    wallet_id: Optional[int] = None
    category: Optional[str] = None
    source: Optional[str] = None
    goal_name: Optional[str] = None
    asset_name: Optional[str] = None
    date: Optional[Union[datetime, date_type]] = None


class TransactionUpdate(BaseModel):
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    type: Optional[str] = None
    wallet_id: Optional[int] = None
    category: Optional[str] = None
    source: Optional[str] = None
    goal_name: Optional[str] = None
    asset_name: Optional[str] = None
    date: Optional[Union[datetime, date_type]] = None


class WalletCreate(BaseModel):
    name: str
    type: str
    balance: Decimal = Decimal("0")
    color: Optional[str] = None
    icon: Optional[str] = None


class WalletUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    balance: Optional[Decimal] = None


class _CamelBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WalletTransferCreate(_CamelBody):
    from_wallet_id: int = Field(alias="fromWalletId")
    to_wallet_id: int = Field(alias="toWalletId")
    amount: Decimal
    description: Optional[str] = None


class SavingsGoalCreate(_CamelBody):
    goal_name: str = Field(alias="goalName")
    target_amount: Decimal = Field(alias="targetAmount")
    target_date: Optional[date_type] = Field(default=None, alias="targetDate")


class SavingsAllocate(_CamelBody):
    goal_id: int = Field(alias="goalId")
    wallet_id: int = Field(alias="walletId")
    amount: Decimal


class SavingsDeallocate(_CamelBody):
    goal_id: int = Field(alias="goalId")
    amount: Decimal


class DailyAssetUpsert(BaseModel):
    date: date_type
    wallet_balance: Decimal
    savings_total: Decimal
    total_assets: Decimal
