# sendback/main.py
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from sendback.alerts import send_error_alert
from sendback.config import Settings, settings as default_settings
from sendback.db import build_engine, create_db_and_tables, open_session
from sendback.deps import bearer_token, tenant_id_from_token
from sendback.logging_config import setup_logging
from sendback.models import Tenant
from sendback.services.balance import check_balance
from sendback.services.payments import PaymentGateway, build_payment_gateway
from sendback.services.sheets import LeadSheetExporter
from sendback.services.sms import SmsGateway

# Routers
from sendback.routers.billing import router as billing_router
from sendback.routers.conversations import router as conversations_router
from sendback.routers.cron import router as cron_router
from sendback.routers.health import router as health_router
from sendback.routers.leads import router as leads_router
from sendback.routers.missed_calls import router as missed_calls_router
from sendback.routers.notifications import router as notifications_router
from sendback.routers.scheduled import router as scheduled_router
from sendback.routers.settings import router as settings_router
from sendback.routers.usage import router as usage_router
from sendback.routers.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)


def _run_balance_check(engine: Engine, tenant_id: int) -> None:
    with open_session(engine) as session:
        tenant = session.get(Tenant, tenant_id)
        if tenant is None or not tenant.is_active:
            return
        check_balance(session, tenant)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    sms: Optional[SmsGateway] = None,
    payments: Optional[PaymentGateway] = None,
    lead_exporter: Optional[LeadSheetExporter] = None,
) -> FastAPI:
    """
    Build the app with its collaborators. Anything not passed in is
    constructed from settings; tests pass fakes.
    """
    settings = settings or default_settings

    app = FastAPI(title="SendBack missed-call auto-responder", version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine if engine is not None else build_engine(settings.DATABASE_URL)
    app.state.sms = sms if sms is not None else SmsGateway(settings)
    app.state.payments = payments if payments is not None else build_payment_gateway(settings)
    app.state.lead_exporter = (
        lead_exporter if lead_exporter is not None else LeadSheetExporter.from_settings(settings)
    )

    # ---------- Balance monitor (every authenticated request) ----------
    @app.middleware("http")
    async def balance_monitor(request: Request, call_next):
        token = bearer_token(request.headers.get("authorization"))
        tenant_id = tenant_id_from_token(app.state.settings, token)
        if tenant_id is not None:
            try:
                await run_in_threadpool(_run_balance_check, app.state.engine, tenant_id)
            except Exception:
                logger.exception("[balance] check failed tenant=%s", tenant_id)
        return await call_next(request)

    # ---------- Errors ----------
    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("[error] %s %s failed", request.method, request.url.path)
        await run_in_threadpool(
            send_error_alert, app.state.sms, app.state.settings,
            f"500 on {request.method} {request.url.path}: {exc!r}",
        )
        return JSONResponse({"detail": "Internal Server Error"}, status_code=500)

    # ---------- Routers ----------
    # Provider callbacks + public
    app.include_router(health_router)
    app.include_router(webhooks_router)

    # Tenant API (each route depends on get_current_tenant)
    app.include_router(missed_calls_router)
    app.include_router(conversations_router)
    app.include_router(leads_router)
    app.include_router(scheduled_router)
    app.include_router(settings_router)
    app.include_router(notifications_router)
    app.include_router(usage_router)
    app.include_router(billing_router)

    # Admin
    app.include_router(cron_router)

    # ---------- Startup ----------
    @app.on_event("startup")
    def on_startup():
        setup_logging(app.state.settings)
        create_db_and_tables(app.state.engine)

    return app


app = create_app()
