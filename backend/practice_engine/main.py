"""Adaptive Practice Engine - FastAPI Application."""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select

from practice_engine.config import settings
from practice_engine.db import async_session, init_db
from practice_engine.db.models import QuestionDB
from practice_engine.errors import PracticeError
from practice_engine.models import QuestionRecord
from practice_engine.routers import difficulty_router, distractors_router, practice_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_questions():
    """Seed the question bank from JSON files if it is empty."""
    if settings.skip_seeding:
        logger.info("SKIP_SEEDING is set. Skipping database seed.")
        return

    async with async_session() as session:
        count = await session.scalar(select(func.count()).select_from(QuestionDB))
        if count and count > 0:
            logger.info(f"Database already has {count} questions. Skipping seed.")
            return

        if not settings.questions_dir.exists():
            logger.warning(f"Questions directory not found: {settings.questions_dir}")
            return

        logger.info("Seeding database with questions...")
        total_imported = 0
        for json_file in sorted(settings.questions_dir.glob("*.json")):
            logger.info(f"Loading {json_file.name}...")
            with open(json_file) as f:
                data = json.load(f)

            questions = data if isinstance(data, list) else data.get("questions", [])
            for q in questions:
                try:
                    record = QuestionRecord.model_validate(q)
                except PydanticValidationError as e:
                    logger.error(f"Error importing question {q.get('id')}: {e}")
                    continue
                session.add(QuestionDB(
                    id=record.id,
                    source=record.source.value,
                    question_type=record.question_type.value,
                    difficulty=record.difficulty.value,
                    topic=record.topic,
                    text=record.text,
                    options=record.options,
                    correct_answer=record.correct_answer,
                    explanation=record.explanation,
                    year=record.year,
                ))
                total_imported += 1

            await session.commit()

        logger.info(f"Imported {total_imported} questions.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing database...")
    await init_db()
    await seed_questions()

    logger.info("Startup complete.")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="Timed practice sessions, MCQ distractors and adaptive difficulty",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PracticeError)
async def practice_error_handler(request: Request, exc: PracticeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(practice_router)
app.include_router(distractors_router)
app.include_router(difficulty_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
