"""
Job endpoints.

    POST /search   submit          → {"success": true, "job_id"}
    POST /status   non-consuming   → {"success": true, "status", "created_time"}
    POST /result   consuming       → stored payload, or a "running" body
    POST /cancel                   → {"success": true, "status": "cancelled", ...}
    GET  /health

Endpoints are plain ``def``: every store call is a blocking sqlite3
operation, so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from seqsearch import __version__
from seqsearch.api.deps import Service, Settings
from seqsearch.api.schemas import (
    CancelResponse,
    HealthResponse,
    JobIdRequest,
    SearchRequest,
    StatusResponse,
    SubmitResponse,
)
from seqsearch.core.errors import JobNotFound
from seqsearch.core.ids import created_time
from seqsearch.jobs.models import JobState

router = APIRouter()


@router.post("/search", response_model=SubmitResponse)
def submit_search(body: SearchRequest, service: Service, settings: Settings) -> SubmitResponse:
    job_id = service.submit(body.to_parameters(settings))
    return SubmitResponse(job_id=job_id)


@router.post("/status", response_model=StatusResponse)
def job_status(body: JobIdRequest, service: Service) -> StatusResponse:
    state = service.status(body.job_id)
    if state == JobState.NOT_FOUND:
        raise JobNotFound(body.job_id)
    return StatusResponse(status=state.value, created_time=created_time(body.job_id))


@router.post("/result")
def job_result(body: JobIdRequest, service: Service) -> dict[str, Any]:
    return service.result(body.job_id).to_response()


@router.post("/cancel", response_model=CancelResponse)
def cancel_job(body: JobIdRequest, service: Service) -> CancelResponse:
    service.cancel(body.job_id)
    return CancelResponse()


@router.get("/health", response_model=HealthResponse)
def health(service: Service) -> HealthResponse:
    running, max_jobs = service.queue_size()
    return HealthResponse(version=__version__, running=running, max_jobs=max_jobs)
