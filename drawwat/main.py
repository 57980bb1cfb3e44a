import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import LOG_LEVEL, NICKNAME_CACHE_SIZE
from .errors import PuzzleError
from .routers import puzzles, user
from .services.database import create_db_and_tables
from .services.nicknames import NicknameCache

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="DrawWat")
app.state.nickname_cache = NicknameCache(max_entries=NICKNAME_CACHE_SIZE)

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(PuzzleError)
async def puzzle_error_handler(request: Request, exc: PuzzleError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
    )

@app.get("/health")
async def health():
    return {"status": "healthy"}

app.include_router(puzzles.router)
app.include_router(user.router)

@app.on_event("startup")
def on_startup():
    create_db_and_tables()
