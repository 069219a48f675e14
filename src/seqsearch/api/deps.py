"""
FastAPI dependencies: the job service and settings owned by the app.

``create_app`` puts one :class:`JobService` on ``app.state``; routes
receive it through :data:`Service` instead of importing a global.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from seqsearch.core.settings import JobSettings
from seqsearch.jobs.service import JobService


def get_service(request: Request) -> JobService:
    return request.app.state.service


def get_settings(request: Request) -> JobSettings:
    return request.app.state.service.settings


Service = Annotated[JobService, Depends(get_service)]
Settings = Annotated[JobSettings, Depends(get_settings)]
