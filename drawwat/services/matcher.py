from typing import NamedTuple


class MatchResult(NamedTuple):
    exact_match: bool
    correct_chars: int
    correct_positions: int


def normalize(text: str, case_sensitive: bool) -> str:
    return text if case_sensitive else text.lower()


def evaluate(answer: str, guess: str, case_sensitive: bool = False) -> MatchResult:
    """Compare a guess against the secret answer.

    ``correct_positions`` counts indices where both strings agree, up to the
    shorter length. ``correct_chars`` is the multiset intersection: each
    guessed character only counts while the answer still has an unmatched
    copy of it.
    """
    normalized_answer = normalize(answer, case_sensitive)
    normalized_guess = normalize(guess, case_sensitive)

    correct_positions = sum(
        1 for a, g in zip(normalized_answer, normalized_guess) if a == g
    )

    remaining = {}
    for char in normalized_answer:
        remaining[char] = remaining.get(char, 0) + 1

    correct_chars = 0
    for char in normalized_guess:
        if remaining.get(char, 0) > 0:
            remaining[char] -= 1
            correct_chars += 1

    return MatchResult(
        exact_match=normalized_answer == normalized_guess,
        correct_chars=correct_chars,
        correct_positions=correct_positions,
    )
