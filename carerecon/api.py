import logging
from datetime import date, datetime

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from carerecon.config import Settings, configure_settings, get_settings
from carerecon.daily_tasks import DailyTaskAggregator
from carerecon.database import CareStore, InMemoryCareStore
from carerecon.dates import date_key, parse_date_key, to_local_date
from carerecon.errors import CareReconError, PreconditionError, StoreError
from carerecon.logging_config import setup_logging
from carerecon.missed_tasks import MissedTaskScanner
from carerecon.shift_access import ShiftAccessChecker

logger = logging.getLogger(__name__)

router = APIRouter()


def _store(request: Request) -> CareStore:
    return request.app.state.store


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _today(request: Request) -> date:
    return to_local_date(request.app.state.now_fn(), _settings(request).tz)


def _required(value: str | None, name: str) -> str:
    if not value:
        raise PreconditionError(f"{name} is required")
    return value


def _parse_date(value: str, name: str = "date") -> date:
    try:
        return parse_date_key(value)
    except ValueError as exc:
        raise PreconditionError(
            f"Invalid {name}: {value!r}", hint="expected YYYY-MM-DD"
        ) from exc


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/caregivers/{caregiver_id}/daily-tasks")
async def daily_tasks(
    caregiver_id: str,
    request: Request,
    date_param: str | None = Query(default=None, alias="date"),
) -> dict:
    today = _today(request)
    day = _parse_date(date_param) if date_param else today
    aggregator = DailyTaskAggregator(_store(request))
    view = await aggregator.aggregate(caregiver_id, day, today=today)
    return view.to_payload()


@router.get("/caregivers/{caregiver_id}/missed-tasks")
async def missed_tasks(
    caregiver_id: str,
    request: Request,
    lookback_days: int | None = Query(default=None, alias="lookbackDays", ge=1, le=366),
) -> dict:
    scanner = MissedTaskScanner(_store(request), _settings(request))
    view = await scanner.scan_caregiver(
        caregiver_id, today=_today(request), lookback_days=lookback_days
    )
    return view.to_payload()


@router.get("/clients/{client_id}/missing-medications")
async def missing_medications(
    client_id: str,
    request: Request,
    caregiver_id: str | None = Query(default=None, alias="caregiverId"),
    details: bool = False,
) -> dict:
    scanner = MissedTaskScanner(_store(request), _settings(request))
    view = await scanner.missing_medications(
        client_id,
        today=_today(request),
        caregiver_id=caregiver_id,
        details=details,
    )
    return view.to_payload()


@router.get("/clients/{client_id}/missing-nutrition")
async def missing_nutrition(
    client_id: str,
    request: Request,
    caregiver_id: str | None = Query(default=None, alias="caregiverId"),
) -> dict:
    scanner = MissedTaskScanner(_store(request), _settings(request))
    view = await scanner.missing_nutrition(
        client_id, today=_today(request), caregiver_id=caregiver_id
    )
    return view.to_payload()


@router.get("/clients/{client_id}/missing-reports")
async def missing_reports(
    client_id: str,
    request: Request,
    caregiver_id: str | None = Query(default=None, alias="caregiverId"),
    details: bool = False,
) -> dict:
    scanner = MissedTaskScanner(_store(request), _settings(request))
    view = await scanner.missing_reports(
        client_id,
        today=_today(request),
        caregiver_id=caregiver_id,
        details=details,
    )
    return view.to_payload()


@router.get("/shifts/check")
async def check_shift(
    request: Request,
    caregiver_id: str | None = Query(default=None, alias="caregiverId"),
    client_id: str | None = Query(default=None, alias="clientId"),
    date_param: str | None = Query(default=None, alias="date"),
) -> dict:
    checker = ShiftAccessChecker(_store(request), _settings(request))
    day = _parse_date(_required(date_param, "date"))
    has_shift = await checker.has_shift(
        _required(caregiver_id, "caregiverId"),
        _required(client_id, "clientId"),
        day,
    )
    return {"date": date_key(day), "hasShift": has_shift}


@router.get("/shifts/check-administration")
async def check_administration(
    request: Request,
    caregiver_id: str | None = Query(default=None, alias="caregiverId"),
    client_id: str | None = Query(default=None, alias="clientId"),
    scheduled_time: datetime | None = Query(default=None, alias="scheduledTime"),
) -> dict:
    if scheduled_time is None:
        raise PreconditionError("scheduledTime is required")
    checker = ShiftAccessChecker(_store(request), _settings(request))
    within = await checker.administration_in_shift(
        _required(caregiver_id, "caregiverId"),
        _required(client_id, "clientId"),
        scheduled_time,
    )
    return {"withinShift": within}


async def handle_care_error(request: Request, exc: CareReconError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message
        )
    else:
        logger.info(
            "%s %s rejected: %s", request.method, request.url.path, exc.message
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_app(
    store: CareStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    # the app's settings are also the ones model parsing reads
    settings = configure_settings(settings) if settings else get_settings()
    setup_logging(settings.log_level, settings.log_file)

    app = FastAPI(title="Care reconciliation")
    app.state.store = store if store is not None else InMemoryCareStore()
    app.state.settings = settings
    app.state.now_fn = lambda: datetime.now(settings.tz)

    app.add_exception_handler(CareReconError, handle_care_error)
    app.include_router(router)
    return app
