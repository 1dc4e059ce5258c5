from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    CREATOR = "CREATOR"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password: Optional[str] = None
    role: UserRole = Field(default=UserRole.CREATOR)
    can_login: bool = Field(default=True)
    country_code: str = Field(default="IN")

    # wallet_balance is spendable, wallet_locked is held against deposits
    wallet_balance: float = Field(default=0.0)
    wallet_locked: float = Field(default=0.0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
