from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

class UserBase(SQLModel):
    provider: str = Field(default="bangumi", max_length=32)
    username: str = Field(index=True, max_length=100)
    avatar_url: Optional[str] = Field(default=None, nullable=True, max_length=255)
    email: Optional[str] = Field(default=None, nullable=True, max_length=100)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class User(UserBase, table=True):
    user_id: str = Field(primary_key=True, max_length=64)

class UserPublic(SQLModel):
    user_id: str
    provider: str
    username: str
    avatar_url: Optional[str]
    email: Optional[str]
    created_at: datetime
