from fastapi import Request

from prepdeck.services.repository import ContentRepository
from prepdeck.services.scheduler import Scheduler


def get_repository(request: Request) -> ContentRepository:
    return request.app.state.repository


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler
