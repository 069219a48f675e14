"""
Request and response models for the job server.

Validation happens here, before admission: a request that fails these
models never reaches the dispatcher and nothing is persisted.  Limits that
depend on settings (``maxnseq <= max_maxnseq``) are applied by
:meth:`SearchRequest.to_parameters`.

Tags:
    seqsearch, api, schemas, pydantic, validation
"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from seqsearch.core.errors import ValidationError
from seqsearch.core.settings import JobSettings

Mode = Literal["minimum", "normal", "maximum"]

MODE_ALIASES: dict[str, str] = {
    "min": "minimum",
    "minimize": "minimum",
    "minimum": "minimum",
    "normal": "normal",
    "max": "maximum",
    "maximize": "maximum",
    "maximum": "maximum",
}

# IUPAC nucleotide codes, degenerate ones included
_INVALID_BASES = re.compile(r"[^ACGTUMRWSYKVHDBN]", re.IGNORECASE)


class SearchRequest(BaseModel):
    """Body of ``POST /search``."""

    model_config = ConfigDict(extra="ignore")

    querylabel: str = Field(description="Label echoed back with the results")
    queryseq: str = Field(description="Query nucleotide sequence")
    db: str | None = Field(default=None, description="Backend database name")
    partition: str | None = Field(default=None, description="Partition to search")
    maxnseq: int | None = Field(default=None, ge=1, description="Maximum number of hits")
    minscore: int | None = Field(default=None, ge=0, description="Minimum corrected score")
    minpsharedkey: float | None = Field(default=None, description="Minimum shared k-mer rate")
    mode: Mode | None = Field(default=None, description="minimum | normal | maximum")

    @field_validator("querylabel", "queryseq")
    @classmethod
    def _required(cls, v: str, info: ValidationInfo) -> str:
        if not v or not v.strip():
            raise ValueError(f"Missing required field: {info.field_name}")
        return v.strip()

    @field_validator("queryseq")
    @classmethod
    def _nucleotides_only(cls, v: str) -> str:
        if _INVALID_BASES.search(v):
            raise ValueError(
                "Query sequence contains invalid characters "
                "(only A, C, G, T, U, M, R, W, S, Y, K, V, H, D, B, N are allowed)"
            )
        return v

    @field_validator("minpsharedkey")
    @classmethod
    def _rate_in_unit_interval(cls, v: float | None) -> float | None:
        if v is not None and not 0.0 <= v <= 1.0:
            raise ValueError(f"minpsharedkey value ({v}) must be between 0.0 and 1.0")
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if isinstance(v, str) and v.lower() in MODE_ALIASES:
            return MODE_ALIASES[v.lower()]
        raise ValueError(f"Invalid mode: {v} (expected minimum, normal or maximum)")

    def to_parameters(self, settings: JobSettings) -> dict[str, Any]:
        """Fill defaults from *settings* and return the job parameters.

        Raises:
            ValidationError: ``maxnseq`` exceeds ``settings.max_maxnseq``.
        """
        maxnseq = self.maxnseq or settings.default_maxnseq
        if maxnseq > settings.max_maxnseq:
            raise ValidationError(
                f"maxnseq value ({maxnseq}) exceeds maximum allowed value ({settings.max_maxnseq})"
            )
        return {
            "querylabel": self.querylabel,
            "queryseq": self.queryseq,
            "db": self.db or settings.default_db,
            "partition": self.partition or settings.default_partition,
            "maxnseq": maxnseq,
            "minscore": self.minscore,
            "minpsharedkey": self.minpsharedkey,
            "mode": self.mode or "normal",
        }


class JobIdRequest(BaseModel):
    """Body of ``POST /status``, ``/result`` and ``/cancel``."""

    job_id: str

    @field_validator("job_id")
    @classmethod
    def _present(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Missing job_id field")
        return v.strip()


class SubmitResponse(BaseModel):
    success: bool = True
    job_id: str


class StatusResponse(BaseModel):
    success: bool = True
    status: str
    created_time: str


class CancelResponse(BaseModel):
    success: bool = True
    status: str = "cancelled"
    message: str = "Job has been cancelled"


class HealthResponse(BaseModel):
    ok: bool = True
    version: str
    running: int
    max_jobs: int


class ErrorResponse(BaseModel):
    """Error envelope for every non-2xx response."""

    success: bool = False
    error: bool = True
    code: str
    message: str
