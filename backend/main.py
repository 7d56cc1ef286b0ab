# Backend main entry point - dashboard API in front of Airtable and Supabase auth
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
load_dotenv()  # Load .env so USE_MOCK=true works for local reviewers
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from auth import AuthError, AuthProviderError, DemoAuth, SupabaseAuth, get_bearer_token
from config import Settings, load_settings
from datasource import (
    ClinicNotFoundError,
    DataSource,
    DataSourceError,
    ForbiddenError,
    RecordNotFoundError,
    UpdateValidationError,
    build_data_source,
)
from fields import get_text, parse_timestamp
from listing import (
    EMPTY_MESSAGE,
    TABS,
    count_by_eligibility,
    filter_by_search,
    filter_by_tab,
    filter_since,
    sort_by_recency,
    take,
)
from logic import ID_FIELDS, build_record_detail, normalize_for_display
from metrics import analytics_totals, compute_dashboard_metrics, daily_totals
from models import AuthUser

logger = logging.getLogger(__name__)

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# Request models
class PreScreenUpdateRequest(BaseModel):
    id: Optional[str] = None
    updates: Optional[Dict[str, Any]] = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _store_error(where: str, e: Exception) -> HTTPException:
    logger.error("[%s] record store error: %s", where, e)
    return HTTPException(status_code=502, detail=str(e) or "Record store error")


def get_data_source(request: Request) -> DataSource:
    return request.app.state.data_source


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user(request: Request, authorization: Optional[str] = Header(None)) -> AuthUser:
    """Validate the bearer session with the auth provider."""
    token = get_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    try:
        return request.app.state.auth.get_user(token)
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid session token")
    except AuthProviderError as e:
        logger.error("Auth provider failure: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


def require_clinic_id(clinicId: Optional[str] = Query(None)) -> str:
    if not clinicId or not clinicId.strip():
        raise HTTPException(status_code=400, detail="Missing clinicId")
    return clinicId.strip()


def _load_dashboard(source: DataSource, clinic_id: str) -> Dict[str, Any]:
    try:
        return source.get_dashboard(clinic_id)
    except DataSourceError as e:
        raise _store_error("dashboard", e)


def create_app(settings: Optional[Settings] = None, data_source: Optional[DataSource] = None, auth=None) -> FastAPI:
    """Build the API. Settings decide mock vs live once, here."""
    settings = settings or load_settings()
    if auth is None:
        auth = DemoAuth() if settings.use_mock else SupabaseAuth(settings.supabase_url, settings.supabase_service_key)
    if data_source is None:
        data_source = build_data_source(settings, auth if isinstance(auth, SupabaseAuth) else None)

    app = FastAPI(title="Pre-Screen Dashboard API")
    app.state.settings = settings
    app.state.auth = auth
    app.state.data_source = data_source

    # Configure CORS - allow local dev and the deployed frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "Pre-Screen Dashboard API"}

    @app.get("/health")
    def health_check(settings: Settings = Depends(get_settings)):
        return {"ok": True, "service": settings.service_name, "ts": _now_iso()}

    @app.get("/health/auth")
    def health_auth(
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Authenticated health check: validates the session and pings the record store."""
        try:
            store = source.ping()
        except DataSourceError as e:
            logger.error("Health check failed: %s", e)
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
        return {
            "ok": True,
            "ts": _now_iso(),
            "authUser": {"id": user.id, "email": user.email},
            "airtable": store,
        }

    @app.get("/me")
    def get_me(
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Signed-in user and the clinic their dashboard email belongs to."""
        try:
            clinic = source.get_clinic_for_user(user)
        except ClinicNotFoundError as e:
            raise HTTPException(status_code=403, detail=str(e))
        except DataSourceError as e:
            raise _store_error("me", e)
        return {"user": {"id": user.id, "email": user.email}, "clinic": clinic.to_dict()}

    @app.get("/clinics")
    def get_clinics(
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Clinic switcher list. Super admins only."""
        try:
            return {"clinics": source.list_clinics(user)}
        except ForbiddenError:
            raise HTTPException(status_code=403, detail="Forbidden")
        except (DataSourceError, AuthProviderError) as e:
            raise _store_error("clinics", e)

    @app.get("/dashboard")
    def get_dashboard(
        clinic_id: str = Depends(require_clinic_id),
        debug: Optional[str] = Query(None),
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
        settings: Settings = Depends(get_settings),
    ):
        """Raw clinic rows plus computed metrics. Never cached."""
        data = _load_dashboard(source, clinic_id)
        prescreens = sort_by_recency_raw(data.get("preScreens") or [])
        dropoffs = data.get("dropOffs") or []
        body: Dict[str, Any] = {
            "preScreens": prescreens,
            "dropOffs": dropoffs,
            "questions": data.get("questions") or [],
            "treatments": data.get("treatments") or [],
            "metrics": compute_dashboard_metrics(prescreens, dropoffs),
        }
        if debug == "1":
            body["debug"] = {
                "baseIdSuffix": settings.airtable_base_id[-6:],
                "clinicId": clinic_id,
                "airtableErrors": data.get("errors") or {},
                "counts": {k: len(body[k]) for k in ("preScreens", "dropOffs", "questions", "treatments")},
            }
        return JSONResponse(content=body, headers=NO_STORE_HEADERS)

    @app.get("/analytics")
    def get_analytics(
        clinic_id: str = Depends(require_clinic_id),
        range_: str = Query("30d", alias="range"),
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        if range_ not in RANGE_DAYS:
            raise HTTPException(status_code=400, detail="range must be one of 7d, 30d, 90d")
        data = _load_dashboard(source, clinic_id)
        prescreens = data.get("preScreens") or []
        return {
            "totals": analytics_totals(prescreens, data.get("dropOffs") or []),
            "daily": daily_totals(prescreens, RANGE_DAYS[range_]),
        }

    @app.get("/prescreens")
    def list_prescreens(
        clinic_id: str = Depends(require_clinic_id),
        tab: str = Query("all"),
        q: Optional[str] = Query(None),
        since: Optional[str] = Query(None),
        limit: Optional[int] = Query(None, ge=1),
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Normalized pre-screen rows for the list views, newest first."""
        tab = tab.strip().lower()
        if tab not in TABS:
            raise HTTPException(status_code=400, detail=f"tab must be one of {', '.join(TABS)}")
        since_dt = parse_timestamp(since) if since else None
        if since and since_dt is None:
            raise HTTPException(status_code=400, detail="since must be an ISO-8601 date")

        data = _load_dashboard(source, clinic_id)
        records = [normalize_for_display(r) for r in data.get("preScreens") or []]
        records = filter_by_search(filter_since(records, since_dt), q)
        rows = take(sort_by_recency(filter_by_tab(records, tab)), limit)
        return {
            "rows": [r.to_dict() for r in rows],
            "counts": count_by_eligibility(records),
            "message": None if rows else EMPTY_MESSAGE,
        }

    @app.get("/prescreens/{record_id}")
    def get_prescreen(
        record_id: str,
        clinic_id: str = Depends(require_clinic_id),
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Drill-down detail for one pre-screen."""
        data = _load_dashboard(source, clinic_id)
        for record in data.get("preScreens") or []:
            if get_text(record, ID_FIELDS) == record_id:
                return build_record_detail(record)
        raise HTTPException(status_code=404, detail="Pre-screen not found")

    @app.post("/prescreen_update")
    def update_prescreen(
        body: PreScreenUpdateRequest,
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Apply a partial update (booking status, review complete, eligibility)."""
        if not body.id or not body.updates:
            raise HTTPException(status_code=400, detail="Missing id or updates")
        try:
            result = source.update_record(body.id, body.updates)
        except UpdateValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except RecordNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DataSourceError as e:
            raise _store_error("prescreen_update", e)
        logger.info("Pre-screen %s updated by %s: %s", body.id, user.id, sorted(body.updates))
        return {"ok": True, "record": result}

    @app.get("/failed")
    def get_failed(
        limit: int = Query(50, ge=1, le=100),
        user: AuthUser = Depends(current_user),
        source: DataSource = Depends(get_data_source),
    ):
        """Canonical failed pre-screens (drop-off rows with a FAIL outcome)."""
        try:
            return {"records": source.get_failed(limit)}
        except DataSourceError as e:
            raise _store_error("failed", e)

    @app.get("/demo/status")
    def demo_status(settings: Settings = Depends(get_settings)):
        """Whether the mock data source is active. Only for frontend visibility gate."""
        return {"demoMode": settings.use_mock}

    return app


def sort_by_recency_raw(prescreens: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Raw rows newest first, using the same ordering as the list views."""
    return [n.raw for n in sort_by_recency(normalize_for_display(r) for r in prescreens)]


app = create_app()

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8000)
