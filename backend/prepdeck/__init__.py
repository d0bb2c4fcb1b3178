from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prepdeck.config import settings

__version__ = "0.1.0"


def create_app(data_dir: Path | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from prepdeck.services.repository import ContentRepository
        from prepdeck.services.scheduler import ReviewPolicy, Scheduler

        policy = ReviewPolicy.from_settings(settings)
        app.state.repository = ContentRepository.open(
            data_dir or settings.data_dir, initial_ease=policy.initial_ease
        )
        app.state.scheduler = Scheduler(policy)
        yield

    application = FastAPI(
        title="PrepDeck", version=__version__, lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from prepdeck.routers import entries, health, records, review

    application.include_router(health.router)
    application.include_router(
        entries.router, prefix="/entries", tags=["entries"]
    )
    application.include_router(
        review.router, prefix="/review", tags=["review"]
    )
    application.include_router(
        records.router, prefix="/records", tags=["records"]
    )

    return application
