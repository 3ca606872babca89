"""FastAPI application — stateless classification endpoints.

The lifespan hook validates every engine table and the question bank
before the first request; a malformed table stops startup instead of
surfacing mid-run.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from affect_router import __version__
from affect_router.api.routes.adaptive import router as adaptive_router
from affect_router.api.routes.classify import router as classify_router
from affect_router.config import EngineConfig, get_settings
from affect_router.engine.question_bank import DEFAULT_QUESTIONS, load_question_bank
from affect_router.engine.rules import ALIASES_VERSION, RULES_VERSION
from affect_router.engine.session import SessionProtocolError
from affect_router.engine.validation import validate_question_bank, validate_tables
from affect_router.models import Question

logger = structlog.get_logger(__name__)

# ── Shared state (initialised in lifespan) ────────────────────

_questions: list[Question] | None = None
_engine_config: EngineConfig | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    global _questions, _engine_config

    settings = get_settings()

    # 1. Engine tables
    validate_tables()
    _engine_config = settings.engine_config()

    # 2. Question bank
    if settings.question_bank_path is not None:
        questions = load_question_bank(settings.question_bank_path)
    else:
        questions = list(DEFAULT_QUESTIONS)
    warnings = validate_question_bank(questions)
    _questions = questions

    logger.info(
        "server.started",
        questions=len(questions),
        bank_warnings=len(warnings),
        rules_version=RULES_VERSION,
    )

    yield  # ← application runs

    _questions = None
    _engine_config = None
    logger.info("server.stopped")


app = FastAPI(
    title="Affect Router API",
    description="Adaptive evidence classification of self-reported emotional state.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(classify_router)
app.include_router(adaptive_router)


@app.exception_handler(SessionProtocolError)
async def protocol_error_handler(request: Request, exc: SessionProtocolError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Health ────────────────────────────────────────────────────

@app.get("/health", tags=["system"])
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "rules_version": RULES_VERSION,
        "aliases_version": ALIASES_VERSION,
        "questions_loaded": len(_questions) if _questions is not None else 0,
    }
