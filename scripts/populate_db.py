import sys
import os
import base64
import random
from io import BytesIO

# Add the project root directory to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image, ImageDraw
from sqlmodel import Session

from drawwat.models.user import User
from drawwat.services.clock import system_clock
from drawwat.services.database import engine, create_db_and_tables
from drawwat.services.lifecycle import PuzzleLifecycle
from drawwat.services.nicknames import NicknameCache
from drawwat.services.s3 import get_image_store
from drawwat.services.store import PuzzleStore

# Test data
test_users = [
    {"user_id": "seed-1", "username": "sakura_fan", "email": "sakura@example.com"},
    {"user_id": "seed-2", "username": "neko_neko", "email": "neko@example.com"},
    {"user_id": "seed-3", "username": "totoro", "email": "totoro@example.com"},
    {"user_id": "seed-4", "username": "kiki", "email": None},
]

test_puzzles = [
    {"creator": "seed-1", "answer": "sakura", "hint": "Spring flower", "expires_in": 0},
    {"creator": "seed-1", "answer": "Totoro", "hint": "Forest spirit", "case_sensitive": True, "expires_in": 1209600},
    {"creator": "seed-2", "answer": "onigiri", "hint": None, "expires_in": 3600},
]

test_guesses = ["sakana", "sakura", "neko", "Totoro", "totoro", "onigiri", "omurice"]


def drawing_data_url() -> str:
    image = Image.new("RGB", (256, 256), "white")
    draw = ImageDraw.Draw(image)
    for _ in range(12):
        points = [(random.randint(0, 255), random.randint(0, 255)) for _ in range(2)]
        draw.line(points, fill=(random.randint(0, 200), 0, random.randint(0, 200)), width=4)
    output = BytesIO()
    image.save(output, format="PNG")
    return "data:image/png;base64," + base64.b64encode(output.getvalue()).decode()


def create_users(session: Session):
    for user_data in test_users:
        if session.get(User, user_data["user_id"]):
            print(f"User {user_data['username']} already exists, skipping")
            continue
        session.add(User(**user_data))
    session.commit()


def create_puzzles(lifecycle: PuzzleLifecycle):
    puzzles = []
    for puzzle_data in test_puzzles:
        try:
            puzzle = lifecycle.create_puzzle(
                creator_id=puzzle_data["creator"],
                image_data=drawing_data_url(),
                answer=puzzle_data["answer"],
                hint=puzzle_data.get("hint"),
                case_sensitive=puzzle_data.get("case_sensitive", False),
                expires_in=puzzle_data["expires_in"],
            )
            puzzles.append(puzzle)
            print(f"Created puzzle {puzzle.puzzle_id} ({puzzle_data['answer']})")
        except Exception as e:
            print(f"Failed to create puzzle {puzzle_data['answer']}: {str(e)}")
    return puzzles


def create_guesses(lifecycle: PuzzleLifecycle, puzzles):
    for puzzle in puzzles:
        for user_data in test_users:
            if user_data["user_id"] == puzzle.creator_id:
                continue
            for guess_text in random.sample(test_guesses, 3):
                result = lifecycle.submit_guess(puzzle.puzzle_id, user_data["user_id"], guess_text)
                if result.is_correct:
                    break


def main():
    create_db_and_tables()
    with Session(engine) as session:
        create_users(session)
        lifecycle = PuzzleLifecycle(
            store=PuzzleStore(session),
            clock=system_clock,
            images=get_image_store(),
            nicknames=NicknameCache(),
        )
        puzzles = create_puzzles(lifecycle)
        create_guesses(lifecycle, puzzles)
    print("Database has been populated!")


if __name__ == "__main__":
    main()
