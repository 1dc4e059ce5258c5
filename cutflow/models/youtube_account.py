from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class YouTubeAccount(SQLModel, table=True):
    __tablename__ = "youtube_account"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True, index=True)
    channel_id: Optional[str] = None

    # encrypted with utils.token_crypto
    access_token_enc: str
    refresh_token_enc: str

    scope: Optional[str] = None
    token_type: Optional[str] = None
    expiry_date: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
