from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone
import uuid

class PuzzleBase(SQLModel):
    creator_id: str = Field(index=True, max_length=64)
    image_key: str = Field(max_length=255)
    answer: str = Field(max_length=500)
    hint: Optional[str] = Field(default=None, max_length=500)
    case_sensitive: bool = Field(default=False)
    expires_at: Optional[datetime] = None  # None = never expires
    is_public: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

class Puzzle(PuzzleBase, table=True):
    puzzle_id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)
