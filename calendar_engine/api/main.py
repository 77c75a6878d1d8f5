"""
FastAPI application for the scheduling engine.

Thin HTTP surface over the engine's library API:
- Recurrence expansion
- Conflict detection (single event and batch)
- Validation (business rules merged with data integrity)
- Schedule optimization
- Timezone lookup and health endpoints

The engine is synchronous and CPU-bound, so path operations are plain
functions run in the framework's threadpool.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from calendar_engine import __version__
from calendar_engine.api.dependencies import get_app_settings, get_detector
from calendar_engine.api.middleware import RequestLoggingMiddleware
from calendar_engine.api.models import (
    BatchConflictsRequest,
    BatchConflictsResponse,
    ConflictListResponse,
    DetectConflictsRequest,
    ErrorResponse,
    ExpandRecurrenceRequest,
    ExpandRecurrenceResponse,
    HealthResponse,
    OptimizeRequest,
    OptimizeResponse,
    ValidateEventRequest,
    ZoneInfoResponse,
)
from calendar_engine.config import Settings, get_settings
from calendar_engine.exceptions import (
    ContractViolationError,
    EventNotFoundError,
    SchedulingEngineError,
)
from calendar_engine.models import ValidationResult
from calendar_engine.services.conflicts import ConflictDetector
from calendar_engine.services.optimizer import optimize_schedule
from calendar_engine.services.recurrence import expand_recurrence
from calendar_engine.services.timezones import is_valid_zone, zone_info
from calendar_engine.services.validation import validate_event, validate_event_data

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    settings.validate_thresholds()

    logger.info(f"Starting scheduling engine API ({settings.python_env})")

    yield

    logger.info("Shutting down scheduling engine API")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Calendar Scheduling Engine API",
    description="""
# Calendar Scheduling Engine API

Stateless scheduling computations over caller-supplied events.

## Endpoints
- **POST /recurrence/expand** - Materialize a recurring event's instances
- **POST /conflicts** - Conflicts of one event against candidates
- **POST /conflicts/batch** - All conflicts within a collection
- **POST /validate** - Data integrity and business rule findings
- **POST /optimize** - Move overlapping events into free slots
- **GET /timezones/{zone_id}** - Zone details

## Error Handling

**Conflicts and rule violations are not errors** - they return 200.

- **200** - Success (including conflicts and failed validation)
- **400** - Contract violation (missing required input)
- **404** - Resource not found
- **422** - Request body validation error
- **500** - Server error
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error(status_code: int, error_type: str, message: str, retryable: bool = False) -> JSONResponse:
    body = ErrorResponse(error_type=error_type, message=message, retryable=retryable)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return _error(exc.status_code, "http_error", str(exc.detail), exc.status_code >= 500)


@app.exception_handler(ContractViolationError)
async def contract_violation_handler(request, exc: ContractViolationError):
    """Missing or malformed required inputs."""
    logger.warning(f"Contract violation: {exc.message}")
    return _error(400, "contract_violation", exc.message)


@app.exception_handler(EventNotFoundError)
async def not_found_handler(request, exc: EventNotFoundError):
    return _error(404, "not_found", exc.message)


@app.exception_handler(SchedulingEngineError)
async def engine_error_handler(request, exc: SchedulingEngineError):
    logger.error(f"Engine error: {exc.message}", exc_info=True)
    return _error(500, "internal_error", exc.message, retryable=False)


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(500, "internal_error", "An unexpected error occurred", retryable=True)


# =============================================================================
# Health & Status Endpoints
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
def health_check() -> HealthResponse:
    """
    Check API health status.

    The engine has no external dependencies; the only runtime requirement
    is a usable IANA zone database.
    """
    zones_ok = is_valid_zone("America/New_York")
    return HealthResponse(
        status="healthy" if zones_ok else "unhealthy",
        version=__version__,
        timezone_database=zones_ok,
    )


@app.get(
    "/timezones/{zone_id:path}",
    response_model=ZoneInfoResponse,
    summary="Zone details",
    tags=["System"],
)
def get_timezone(
    zone_id: str,
    at: Optional[datetime] = Query(None, description="Instant to evaluate (default: now)"),
) -> ZoneInfoResponse:
    """
    Get a zone's offset, abbreviation and DST flag.

    Unknown ids are not an error: UTC's details are returned with
    is_valid=false.
    """
    details = zone_info(zone_id, at)
    return ZoneInfoResponse(
        zone_id=details.zone_id,
        requested=zone_id,
        is_valid=is_valid_zone(zone_id),
        utc_offset_minutes=details.utc_offset_minutes,
        abbreviation=details.abbreviation,
        is_dst=details.is_dst,
    )


# =============================================================================
# Engine Endpoints
# =============================================================================


@app.post(
    "/recurrence/expand",
    response_model=ExpandRecurrenceResponse,
    summary="Expand recurring event",
    tags=["Recurrence"],
)
def expand(
    request: ExpandRecurrenceRequest,
    settings: Settings = Depends(get_app_settings),
) -> ExpandRecurrenceResponse:
    """Materialize the instances of an event that overlap a window."""
    max_instances = request.max_instances or settings.recurrence_max_instances
    instances = expand_recurrence(
        request.event, request.window_start, request.window_end, max_instances
    )
    logger.info(f"Expanded {request.event.id} into {len(instances)} instances")
    return ExpandRecurrenceResponse(instances=instances, total=len(instances))


@app.post(
    "/conflicts",
    response_model=ConflictListResponse,
    summary="Detect conflicts for one event",
    tags=["Conflicts"],
)
def detect_conflicts(
    request: DetectConflictsRequest,
    detector: ConflictDetector = Depends(get_detector),
) -> ConflictListResponse:
    """
    Check one event against candidate events.

    Returns overlap, travel-time and buffer conflicts with resolution
    suggestions, most severe first.
    """
    conflicts = detector.detect(request.event, request.candidates, request.options)
    return ConflictListResponse(
        event_id=request.event.id,
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
    )


@app.post(
    "/conflicts/batch",
    response_model=BatchConflictsResponse,
    summary="Detect conflicts within a collection",
    tags=["Conflicts"],
)
def detect_batch_conflicts(
    request: BatchConflictsRequest,
    detector: ConflictDetector = Depends(get_detector),
) -> BatchConflictsResponse:
    """Detect every conflict in a collection, keyed by event id."""
    conflict_map = detector.detect_batch(request.events, request.options)
    return BatchConflictsResponse(
        conflicts=conflict_map,
        events_with_conflicts=len(conflict_map),
    )


@app.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate an event",
    tags=["Validation"],
)
def validate(
    request: ValidateEventRequest,
    detector: ConflictDetector = Depends(get_detector),
) -> ValidationResult:
    """
    Validate an event's data integrity and business rules.

    A failed validation is a normal 200 response with ok=false.
    """
    data_result = validate_event_data(request.event)
    rules_result = validate_event(request.event, request.existing_events, request.rules, detector)
    return data_result.merge(rules_result)


@app.post(
    "/optimize",
    response_model=OptimizeResponse,
    summary="Optimize a schedule",
    tags=["Optimization"],
)
def optimize(
    request: OptimizeRequest,
    detector: ConflictDetector = Depends(get_detector),
    settings: Settings = Depends(get_app_settings),
) -> OptimizeResponse:
    """Move lower-priority overlapping events into the next free slots."""
    optimized = optimize_schedule(
        request.events,
        request.constraints,
        detector=detector,
        slot_minutes=settings.optimizer_slot_minutes,
        default_window_days=settings.default_rescheduling_window_days,
    )
    moved = [
        after.id
        for before, after in zip(request.events, optimized)
        if before.start_time != after.start_time or before.end_time != after.end_time
    ]
    return OptimizeResponse(events=optimized, moved_event_ids=moved)


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Run the API server with Uvicorn, defaulting to the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "calendar_engine.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.api_reload if reload is None else reload,
    )


if __name__ == "__main__":
    run_server()
