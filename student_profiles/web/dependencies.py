from __future__ import annotations

from fastapi import Request

from student_profiles.infrastructure.config import StoreConfig, get_settings
from student_profiles.infrastructure.db import build_store
from student_profiles.infrastructure.repository import StudentRepository


def get_store_config(request: Request) -> StoreConfig:
    config = getattr(request.app.state, "store_config", None)
    if config is None:
        config = get_settings().store
        request.app.state.store_config = config
    return config


def get_repository(request: Request) -> StudentRepository:
    """One repository per application; its loaded collection is the source of truth."""
    repo = getattr(request.app.state, "repository", None)
    if repo is not None:
        return repo

    config = get_store_config(request)
    repo = StudentRepository(build_store(config), tz=get_settings().app.tzinfo)
    request.app.state.repository = repo
    return repo
