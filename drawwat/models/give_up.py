from sqlmodel import SQLModel, Field, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone

class GiveUpBase(SQLModel):
    puzzle_id: str = Field(foreign_key="puzzle.puzzle_id", index=True)
    user_id: str = Field(index=True, max_length=64)
    given_up_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class GiveUp(GiveUpBase, table=True):
    __tablename__ = "give_up"
    __table_args__ = (
        UniqueConstraint("puzzle_id", "user_id", name="uq_give_up_puzzle_user"),
    )

    give_up_id: Optional[int] = Field(default=None, primary_key=True)
