import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, delete, func

from ..errors import (
    AlreadyGivenUp,
    AlreadySolved,
    Forbidden,
    NotFound,
    ValidationError,
)
from ..models.give_up import GiveUp
from ..models.guess import Guess
from ..models.puzzle import Puzzle
from ..models.solve import Solve
from ..models.user import User
from .expiry import is_expired, seconds_between
from .matcher import evaluate, normalize

logger = logging.getLogger(__name__)


@dataclass
class GuessOutcome:
    guess: Guess
    puzzle: Puzzle
    is_after_expiry: bool
    # Set only when this guess created the (puzzle, user) solve
    solve: Optional[Solve] = None


@dataclass
class RankedSolve:
    rank: int
    user_id: str
    solved_at: datetime
    time_to_solve: int
    username: Optional[str] = None


@dataclass
class PuzzleStats:
    total_guesses: int
    correct_guesses: int
    accuracy: float
    solves: List[RankedSolve] = field(default_factory=list)


@dataclass
class PuzzlePage:
    items: List[Puzzle]
    page: int
    page_size: int
    total: int


class PuzzleStore:
    """Persistence for puzzles and everything hanging off them.

    Uniqueness of solves and give-ups is enforced by the database; an
    ``IntegrityError`` on insert is read as "already recorded".
    """

    def __init__(self, session: Session):
        self.session = session

    def create_puzzle(
        self,
        creator_id: str,
        image_key: str,
        answer: str,
        created_at: datetime,
        hint: Optional[str] = None,
        case_sensitive: bool = False,
        expires_in: int = 0,
        is_public: bool = True,
    ) -> Puzzle:
        if not answer:
            raise ValidationError("Answer is required")
        if not image_key:
            raise ValidationError("Image is required")

        puzzle = Puzzle(
            creator_id=creator_id,
            image_key=image_key,
            answer=answer,
            hint=hint or None,
            case_sensitive=case_sensitive,
            expires_at=created_at + timedelta(seconds=expires_in) if expires_in else None,
            is_public=is_public,
            created_at=created_at,
        )
        self.session.add(puzzle)
        self.session.commit()
        self.session.refresh(puzzle)
        return puzzle

    def get_puzzle(self, puzzle_id: str) -> Puzzle:
        puzzle = self.session.get(Puzzle, puzzle_id)
        if not puzzle:
            raise NotFound()
        return puzzle

    def delete_puzzle(self, puzzle_id: str, requesting_user_id: str) -> str:
        """Delete a puzzle with its guesses, solves and give-ups.

        Returns the image key so the caller can release it once the rows
        are gone.
        """
        puzzle = self.get_puzzle(puzzle_id)
        if puzzle.creator_id != requesting_user_id:
            raise Forbidden("Only the puzzle creator can delete the puzzle")

        image_key = puzzle.image_key

        # Dependents first to satisfy foreign keys
        self.session.exec(delete(Guess).where(Guess.puzzle_id == puzzle_id))
        self.session.exec(delete(Solve).where(Solve.puzzle_id == puzzle_id))
        self.session.exec(delete(GiveUp).where(GiveUp.puzzle_id == puzzle_id))
        self.session.delete(puzzle)
        self.session.commit()
        return image_key

    def _lock_puzzle(self, puzzle_id: str) -> Puzzle:
        # Row lock on the puzzle serialises solves and give-ups for it
        puzzle = self.session.exec(
            select(Puzzle).where(Puzzle.puzzle_id == puzzle_id).with_for_update()
        ).first()
        if not puzzle:
            self.session.rollback()
            raise NotFound()
        return puzzle

    def record_guess(self, puzzle_id: str, user_id: str, guess_text: str, now: datetime) -> GuessOutcome:
        """Store a guess and, when it is the user's first correct one before
        expiry, the matching Solve. Everything happens in one transaction."""
        puzzle = self._lock_puzzle(puzzle_id)
        if puzzle.creator_id == user_id:
            self.session.rollback()
            raise Forbidden("You cannot guess on your own puzzle")
        if self.give_up_for(puzzle_id, user_id, for_update=True):
            self.session.rollback()
            raise Forbidden("You gave up on this puzzle")

        after_expiry = is_expired(puzzle.expires_at, now)
        match = evaluate(puzzle.answer, guess_text, puzzle.case_sensitive)

        guess = Guess(
            puzzle_id=puzzle_id,
            user_id=user_id,
            guess_text=guess_text,
            is_correct=match.exact_match,
            correct_chars=match.correct_chars,
            correct_positions=match.correct_positions,
            is_after_expiry=after_expiry,
            guessed_at=now,
        )
        self.session.add(guess)
        self.session.flush()

        solve = None
        if match.exact_match and not after_expiry:
            solve = Solve(
                puzzle_id=puzzle_id,
                user_id=user_id,
                solved_at=now,
                time_to_solve=seconds_between(puzzle.created_at, now),
            )
            try:
                with self.session.begin_nested():
                    self.session.add(solve)
            except IntegrityError:
                # An earlier (or concurrent) guess already solved it
                solve = None

        self.session.commit()
        self.session.refresh(guess)
        if solve is not None:
            self.session.refresh(solve)
            logger.info("Puzzle %s solved by %s in %ss", puzzle_id, user_id, solve.time_to_solve)

        return GuessOutcome(guess=guess, puzzle=puzzle, is_after_expiry=after_expiry, solve=solve)

    def record_give_up(self, puzzle_id: str, user_id: str, now: datetime) -> GiveUp:
        puzzle = self._lock_puzzle(puzzle_id)
        if puzzle.creator_id == user_id:
            self.session.rollback()
            raise Forbidden("You cannot give up on your own puzzle")
        if self.solve_for(puzzle_id, user_id, for_update=True):
            self.session.rollback()
            raise AlreadySolved()

        give_up = GiveUp(puzzle_id=puzzle_id, user_id=user_id, given_up_at=now)
        self.session.add(give_up)
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise AlreadyGivenUp()

        self.session.commit()
        self.session.refresh(give_up)
        logger.info("User %s gave up on puzzle %s", user_id, puzzle_id)
        return give_up

    def give_up_for(self, puzzle_id: str, user_id: str, for_update: bool = False) -> Optional[GiveUp]:
        statement = select(GiveUp).where(
            (GiveUp.puzzle_id == puzzle_id) & (GiveUp.user_id == user_id)
        )
        if for_update:
            statement = statement.with_for_update()
        return self.session.exec(statement).first()

    def solve_for(self, puzzle_id: str, user_id: str, for_update: bool = False) -> Optional[Solve]:
        statement = select(Solve).where(
            (Solve.puzzle_id == puzzle_id) & (Solve.user_id == user_id)
        )
        if for_update:
            statement = statement.with_for_update()
        return self.session.exec(statement).first()

    def count_guesses(self, puzzle_id: str, correct_only: bool = False) -> int:
        statement = (
            select(func.count(Guess.guess_id))
            .where(Guess.puzzle_id == puzzle_id)
            .where(Guess.is_after_expiry == False)  # noqa: E712
        )
        if correct_only:
            statement = statement.where(Guess.is_correct == True)  # noqa: E712
        return self.session.exec(statement).one()

    def stats(self, puzzle_id: str) -> PuzzleStats:
        self.get_puzzle(puzzle_id)
        total = self.count_guesses(puzzle_id)
        correct = self.count_guesses(puzzle_id, correct_only=True)
        return PuzzleStats(
            total_guesses=total,
            correct_guesses=correct,
            accuracy=correct / total if total else 0.0,
            solves=self.leaderboard(puzzle_id),
        )

    def leaderboard(self, puzzle_id: str) -> List[RankedSolve]:
        # solve_id breaks ties between identical timestamps
        solves = self.session.exec(
            select(Solve)
            .where(Solve.puzzle_id == puzzle_id)
            .order_by(Solve.solved_at.asc(), Solve.solve_id.asc())
        ).all()
        return [
            RankedSolve(
                rank=position,
                user_id=solve.user_id,
                solved_at=solve.solved_at,
                time_to_solve=solve.time_to_solve,
            )
            for position, solve in enumerate(solves, start=1)
        ]

    def wrong_guess_frequency(self, puzzle_id: str, limit: int = 20) -> List[tuple]:
        """Most common wrong answers, excluding guesses made after expiry.

        Texts are grouped the same way the puzzle compares answers, so on a
        case-insensitive puzzle "Neko" and "neko" count together.
        """
        puzzle = self.get_puzzle(puzzle_id)
        key = Guess.guess_text if puzzle.case_sensitive else func.lower(Guess.guess_text)
        count = func.count(Guess.guess_id).label("count")
        rows = self.session.exec(
            select(key, count)
            .where(Guess.puzzle_id == puzzle_id)
            .where(Guess.is_correct == False)  # noqa: E712
            .where(Guess.is_after_expiry == False)  # noqa: E712
            .group_by(key)
            .order_by(count.desc(), key.asc())
            .limit(limit)
        ).all()
        return [(normalize(text, puzzle.case_sensitive), total) for text, total in rows]

    def user_guesses(self, puzzle_id: str, user_id: str) -> Sequence[Guess]:
        return self.session.exec(
            select(Guess)
            .where((Guess.puzzle_id == puzzle_id) & (Guess.user_id == user_id))
            .order_by(Guess.guessed_at.desc(), Guess.guess_id.desc())
        ).all()

    def list_public_puzzles(self, page: int, page_size: int) -> PuzzlePage:
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be positive")
        total = self.session.exec(
            select(func.count(Puzzle.puzzle_id)).where(Puzzle.is_public == True)  # noqa: E712
        ).one()
        items = self.session.exec(
            select(Puzzle)
            .where(Puzzle.is_public == True)  # noqa: E712
            .order_by(Puzzle.created_at.desc(), Puzzle.puzzle_id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return PuzzlePage(items=list(items), page=page, page_size=page_size, total=total)

    def puzzles_created_by(self, user_id: str) -> Sequence[Puzzle]:
        return self.session.exec(
            select(Puzzle)
            .where(Puzzle.creator_id == user_id)
            .order_by(Puzzle.created_at.desc())
        ).all()

    def get_user(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def usernames_for(self, user_ids: Sequence[str]) -> Dict[str, str]:
        if not user_ids:
            return {}
        users = self.session.exec(select(User).where(User.user_id.in_(user_ids))).all()
        return {user.user_id: user.username for user in users}
