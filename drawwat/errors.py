"""Domain errors raised by the puzzle store and lifecycle engine.

Routers never build HTTP errors for these themselves; ``main.py`` installs a
single handler that maps each error to its ``status_code`` and ``code``.
"""
from typing import Optional


class PuzzleError(Exception):
    status_code = 500
    code = "error"
    default_detail = "Puzzle operation failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(PuzzleError):
    status_code = 404
    code = "not_found"
    default_detail = "Puzzle not found"


class Forbidden(PuzzleError):
    status_code = 403
    code = "forbidden"
    default_detail = "Forbidden"


class ValidationError(PuzzleError):
    status_code = 400
    code = "validation_error"
    default_detail = "Invalid request"


class PuzzleNotExpired(ValidationError):
    code = "puzzle_not_expired"
    default_detail = "This puzzle has not expired yet"


class Conflict(PuzzleError):
    status_code = 409
    code = "conflict"
    default_detail = "Already recorded"


class AlreadySolved(Conflict):
    code = "already_solved"
    default_detail = "You have already solved this puzzle"


class AlreadyGivenUp(Conflict):
    code = "already_given_up"
    default_detail = "You have already given up on this puzzle"


class ImageStoreError(PuzzleError):
    status_code = 502
    code = "image_store_error"
    default_detail = "Failed to store image"
