from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import Settings, load_settings
from .models import InboundMessage, Report, ScanCreated, ScanRequest
from .report import format_report_markdown
from .runner import apply_inbound_message, run_scan
from .store import ScanNotFoundError, ScanStore


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Nothing touches the filesystem until the server starts.
        logging.basicConfig(
            level=getattr(logging, settings.log_level, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        app.state.store = ScanStore(settings.store_dir)
        yield

    app = FastAPI(title="Campaign Readiness Runner", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    def _store() -> ScanStore:
        return app.state.store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    def _stored_report(scan_id: str) -> Report:
        try:
            data = _store().load_report(scan_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if data is None:
            raise HTTPException(status_code=404, detail=f"Report not found: {scan_id}")
        return Report.model_validate(data)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.post("/api/scan", response_model=ScanCreated)
    def create_scan(req: ScanRequest):
        try:
            scan, report = run_scan(req, _store(), settings)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ScanCreated(scan_id=scan.scan_id, report=report)

    @app.get("/api/scan/{scan_id}")
    def get_scan(scan_id: str):
        try:
            data = _store().load(scan_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if data is None:
            raise HTTPException(status_code=404, detail=f"Scan not found: {scan_id}")
        return data

    @app.get("/api/scan/{scan_id}/report", response_model=Report)
    def get_report(scan_id: str):
        return _stored_report(scan_id)

    @app.get("/api/scan/{scan_id}/report.md", response_class=PlainTextResponse)
    def get_report_markdown(scan_id: str):
        return format_report_markdown(_stored_report(scan_id))

    @app.post("/api/inbound", response_model=ScanCreated)
    def inbound(message: InboundMessage):
        if not settings.inbound_domain:
            raise HTTPException(status_code=503, detail="Inbound verification is not configured.")
        try:
            scan_id, report = apply_inbound_message(_store(), message, settings.inbound_domain)
        except ScanNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ScanCreated(scan_id=scan_id, report=report)

    @app.get("/api/scans")
    def find_scans(email: str | None = None, domain: str | None = None):
        if not email and not domain:
            raise HTTPException(status_code=400, detail="Provide email or domain.")
        scan_ids: list[str] = []
        if email:
            scan_ids.extend(_store().find_by_email(email))
        if domain:
            scan_ids.extend(s for s in _store().find_by_domain(domain) if s not in scan_ids)
        return {"scan_ids": scan_ids}

    return app


app = create_app()
