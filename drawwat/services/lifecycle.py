"""Puzzle lifecycle: creation, guessing, giving up and the read-side views.

A (puzzle, user) pair moves from untouched to guessing (any number of wrong
or late guesses) and then either to solved, on the first exact guess before
expiry, or to gave-up. Both end states are terminal and exclusive.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from fastapi import Depends, Request
from sqlmodel import Session

from ..config import DEFAULT_EXPIRES_IN
from ..errors import Forbidden, PuzzleNotExpired, ValidationError
from ..models.guess import Guess
from ..models.puzzle import Puzzle
from ..models.user import User
from .clock import Clock, get_clock
from .database import get_session
from .expiry import is_expired
from .nicknames import NicknameCache
from .s3 import ImageStore, get_image_store, parse_data_url
from .store import PuzzlePage, PuzzleStats, PuzzleStore, RankedSolve

logger = logging.getLogger(__name__)

CORRECT_MESSAGE = "Correct! Well done."
WRONG_MESSAGE = "Not quite... keep trying."
EXPIRED_MESSAGE = "This puzzle has expired, guesses no longer count."


@dataclass
class GuessHint:
    correct_chars: int
    correct_positions: int
    answer_length: int


@dataclass
class GuessResult:
    is_correct: bool
    is_expired: bool
    is_counted: bool
    message: str
    correct_answer: Optional[str] = None
    time_to_solve: Optional[int] = None
    hint: Optional[GuessHint] = None


@dataclass
class GiveUpStatus:
    has_given_up: bool
    given_up_at: Optional[datetime] = None
    answer: Optional[str] = None


@dataclass
class UserGuessHistory:
    guesses: Sequence[Guess]
    total_count: int
    correct_count: int
    counted_count: int


@dataclass
class CreatedPuzzleSummary:
    puzzle: Puzzle
    total_guesses: int
    correct_guesses: int


class PuzzleLifecycle:
    def __init__(self, store: PuzzleStore, clock: Clock, images: ImageStore, nicknames: NicknameCache):
        self.store = store
        self.clock = clock
        self.images = images
        self.nicknames = nicknames

    def is_expired(self, puzzle: Puzzle) -> bool:
        return is_expired(puzzle.expires_at, self.clock.now())

    def image_url(self, puzzle: Puzzle) -> str:
        return self.images.url_for(puzzle.image_key)

    def create_puzzle(
        self,
        creator_id: str,
        image_data: str,
        answer: str,
        hint: Optional[str] = None,
        case_sensitive: bool = False,
        expires_in: int = DEFAULT_EXPIRES_IN,
        is_public: bool = True,
    ) -> Puzzle:
        # Checked before the upload so bad input never reaches the image store
        if not answer:
            raise ValidationError("Answer is required")
        if expires_in < 0:
            raise ValidationError("expires_in must be 0 (never) or a positive number of seconds")

        data, content_type = parse_data_url(image_data)
        image_key = self.images.upload(data, content_type)

        try:
            puzzle = self.store.create_puzzle(
                creator_id=creator_id,
                image_key=image_key,
                answer=answer,
                created_at=self.clock.now(),
                hint=hint,
                case_sensitive=case_sensitive,
                expires_in=expires_in,
                is_public=is_public,
            )
        except Exception:
            # Don't leave an orphaned image behind
            self.images.delete(image_key)
            raise

        logger.info("Puzzle %s created by %s", puzzle.puzzle_id, creator_id)
        return puzzle

    def get_puzzle(self, puzzle_id: str) -> Puzzle:
        return self.store.get_puzzle(puzzle_id)

    def delete_puzzle(self, puzzle_id: str, user_id: str) -> None:
        image_key = self.store.delete_puzzle(puzzle_id, user_id)
        logger.info("Puzzle %s deleted by %s", puzzle_id, user_id)
        # The database delete is authoritative; a failed release is only logged
        if not self.images.delete(image_key):
            logger.warning("Image %s for deleted puzzle %s was not released", image_key, puzzle_id)

    def submit_guess(self, puzzle_id: str, user_id: str, guess_text: str) -> GuessResult:
        if not guess_text or not guess_text.strip():
            raise ValidationError("Guess cannot be empty")

        # Creator and gave-up checks run inside the store transaction
        outcome = self.store.record_guess(puzzle_id, user_id, guess_text, self.clock.now())
        guess = outcome.guess
        expired = outcome.is_after_expiry

        if guess.is_correct:
            return GuessResult(
                is_correct=True,
                is_expired=expired,
                is_counted=not expired,
                message=CORRECT_MESSAGE,
                correct_answer=outcome.puzzle.answer,
                time_to_solve=outcome.solve.time_to_solve if outcome.solve else None,
            )

        return GuessResult(
            is_correct=False,
            is_expired=expired,
            is_counted=not expired,
            message=EXPIRED_MESSAGE if expired else WRONG_MESSAGE,
            hint=GuessHint(
                correct_chars=guess.correct_chars,
                correct_positions=guess.correct_positions,
                answer_length=len(outcome.puzzle.answer),
            ),
        )

    def give_up(self, puzzle_id: str, user_id: str) -> GiveUpStatus:
        give_up = self.store.record_give_up(puzzle_id, user_id, self.clock.now())
        puzzle = self.store.get_puzzle(puzzle_id)
        return GiveUpStatus(has_given_up=True, given_up_at=give_up.given_up_at, answer=puzzle.answer)

    def get_give_up_status(self, puzzle_id: str, user_id: str) -> GiveUpStatus:
        puzzle = self.store.get_puzzle(puzzle_id)
        give_up = self.store.give_up_for(puzzle_id, user_id)
        if not give_up:
            return GiveUpStatus(has_given_up=False)
        return GiveUpStatus(has_given_up=True, given_up_at=give_up.given_up_at, answer=puzzle.answer)

    def _require_creator(self, puzzle_id: str, user_id: str) -> Puzzle:
        puzzle = self.store.get_puzzle(puzzle_id)
        if puzzle.creator_id != user_id:
            raise Forbidden("Only the puzzle creator can view this")
        return puzzle

    def _with_usernames(self, solves: List[RankedSolve]) -> List[RankedSolve]:
        usernames = self.nicknames.resolve_many(
            (solve.user_id for solve in solves), self.store.usernames_for
        )
        for solve in solves:
            solve.username = usernames.get(solve.user_id)
        return solves

    def get_stats(self, puzzle_id: str, user_id: str) -> PuzzleStats:
        self._require_creator(puzzle_id, user_id)
        stats = self.store.stats(puzzle_id)
        self._with_usernames(stats.solves)
        return stats

    def get_leaderboard(self, puzzle_id: str) -> List[RankedSolve]:
        self.store.get_puzzle(puzzle_id)
        return self._with_usernames(self.store.leaderboard(puzzle_id))

    def get_wrong_guess_frequency(self, puzzle_id: str, user_id: str, limit: int = 20) -> List[tuple]:
        self._require_creator(puzzle_id, user_id)
        return self.store.wrong_guess_frequency(puzzle_id, limit=limit)

    def list_public_puzzles(self, page: int = 1, page_size: int = 20) -> PuzzlePage:
        return self.store.list_public_puzzles(page, page_size)

    def get_answer(self, puzzle_id: str) -> str:
        puzzle = self.store.get_puzzle(puzzle_id)
        if not self.is_expired(puzzle):
            raise PuzzleNotExpired()
        return puzzle.answer

    def get_user_guesses(self, puzzle_id: str, user_id: str) -> UserGuessHistory:
        self.store.get_puzzle(puzzle_id)
        guesses = self.store.user_guesses(puzzle_id, user_id)
        return UserGuessHistory(
            guesses=guesses,
            total_count=len(guesses),
            correct_count=sum(1 for g in guesses if g.is_correct and not g.is_after_expiry),
            counted_count=sum(1 for g in guesses if not g.is_after_expiry),
        )

    def get_me(self, user_id: str) -> User:
        return self.store.get_user(user_id)

    def get_my_puzzles(self, user_id: str) -> List[CreatedPuzzleSummary]:
        return [
            CreatedPuzzleSummary(
                puzzle=puzzle,
                total_guesses=self.store.count_guesses(puzzle.puzzle_id),
                correct_guesses=self.store.count_guesses(puzzle.puzzle_id, correct_only=True),
            )
            for puzzle in self.store.puzzles_created_by(user_id)
        ]


def get_lifecycle(
    request: Request,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    images: ImageStore = Depends(get_image_store),
) -> PuzzleLifecycle:
    return PuzzleLifecycle(
        store=PuzzleStore(session),
        clock=clock,
        images=images,
        nicknames=request.app.state.nickname_cache,
    )
