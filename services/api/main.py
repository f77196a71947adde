"""
Lead Inbox API - FastAPI backend for the intake form and the admin export
Leads are stored as GitHub issues; the admin side decodes them back into rows
"""

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from services.codec.decoder import coerce_issue
from services.codec.encoder import LeadValidationError, build_record, encode_record
from services.export.formatter import export_filename, to_csv, to_json
from services.export.mapper import filter_by_date, filter_rows, parse_day, rows_from_issues
from services.ingest.client import GitHubAPIError, GitHubIssuesClient, GitHubTimeoutError
from services.ingest.config import ConfigError, Settings, get_version_info
from services.normalize.fields import normalize_site, parse_consultation_type
from shared.schemas.lead import ExportRow, LeadSubmission

logger = structlog.get_logger()

NO_STORE = {"Cache-Control": "no-store"}


class AdminAuthError(Exception):
    """Admin token missing or wrong"""


def subdomain_of(host: str) -> str:
    """aaa.domain.com -> aaa; bare domains and IPs have no subdomain"""
    if not host:
        return ""
    hostname = host.split(":")[0].strip().lower()
    parts = hostname.split(".")
    if len(parts) <= 2 or hostname.replace(".", "").isdigit():
        return ""
    return parts[0]


def resolve_site(
    body_site: Optional[str],
    query_site: Optional[str],
    host: str,
    referer: str,
    default_site: str,
) -> str:
    """
    Which storefront a lead came from.

    Order: body -> ?site= -> request host subdomain -> referer subdomain -> default
    """
    referer_host = ""
    if referer:
        try:
            referer_host = urlparse(referer).hostname or ""
        except ValueError:
            referer_host = ""

    return (
        normalize_site(body_site)
        or normalize_site(query_site)
        or subdomain_of(host)
        or subdomain_of(referer_host)
        or default_site
    )


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def _admin_token(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.startswith("Bearer "):
        return auth[7:].strip()
    return request.query_params.get("token", "")


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content = {"ok": False, "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Explicit settings; read from the environment when omitted
        transport: httpx transport for the GitHub client (tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the GitHub client on startup"""
        app.state.settings = settings if settings is not None else Settings.from_env(require=False)
        missing = app.state.settings.missing()
        if missing:
            logger.warning("Starting with incomplete configuration", missing=missing)
        app.state.github = GitHubIssuesClient(app.state.settings, transport=transport)
        logger.info("Starting Lead Inbox API", repo=app.state.settings.repo_full_name)
        yield
        await app.state.github.close()
        logger.info("Shutting down Lead Inbox API")

    app = FastAPI(
        title="Lead Inbox API",
        description="Consultation lead intake backed by GitHub Issues",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The intake form is served from every storefront subdomain
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        logger.error("Configuration error", error=str(exc))
        return _error(500, str(exc))

    @app.exception_handler(AdminAuthError)
    async def unauthorized_handler(request: Request, exc: AdminAuthError):
        return _error(401, "Unauthorized")

    @app.exception_handler(LeadValidationError)
    async def validation_error_handler(request: Request, exc: LeadValidationError):
        return _error(400, str(exc))

    @app.exception_handler(GitHubAPIError)
    async def github_error_handler(request: Request, exc: GitHubAPIError):
        status_code = 504 if isinstance(exc, GitHubTimeoutError) else 502
        return _error(status_code, exc.message, exc.detail)

    async def collect_rows(
        request: Request,
        site: Optional[str],
        type_: Optional[str],
        date_from: Optional[str],
        date_to: Optional[str],
        label: Optional[str],
    ) -> list[ExportRow]:
        settings: Settings = request.app.state.settings.require()
        if not secrets.compare_digest(_admin_token(request).encode(), settings.admin_token.encode()):
            raise AdminAuthError("Unauthorized")
        if type_ and parse_consultation_type(type_) is None:
            raise LeadValidationError(f"Unsupported type filter: {type_!r}")

        labels = [item.strip() for item in label.split(",") if item.strip()] if label else None
        raw_issues = await request.app.state.github.list_issues(labels=labels)
        issues = filter_by_date(
            [coerce_issue(raw) for raw in raw_issues],
            parse_day(date_from),
            parse_day(date_to),
        )

        rows = rows_from_issues(issues, settings.default_site)
        rows = filter_rows(rows, site=site, consultation_type=type_)
        logger.info("Collected lead rows", fetched=len(raw_issues), rows=len(rows), site=site, type=type_)
        return rows

    def render(rows: list[ExportRow], fmt: str, download: bool) -> Response:
        fmt = "csv" if fmt == "csv" else "json"
        headers = dict(NO_STORE)
        if download:
            headers["Content-Disposition"] = f'attachment; filename="{export_filename(fmt)}"'
        if fmt == "csv":
            return Response(
                content=to_csv(rows),
                media_type="text/csv; charset=utf-8",
                headers=headers,
            )
        return JSONResponse(content=to_json(rows), headers=headers)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        settings: Settings = app.state.settings
        if settings.missing():
            return {"status": "degraded", "missing": settings.missing()}
        github_ok = await app.state.github.check_health()
        return {"status": "healthy" if github_ok else "degraded", "github": github_ok}

    @app.post("/api/submit")
    async def submit_lead(request: Request):
        """Store one form submission as a GitHub issue."""
        settings: Settings = request.app.state.settings.require()

        try:
            data = await request.json()
        except ValueError:
            data = {}
        try:
            submission = LeadSubmission.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as e:
            raise LeadValidationError(f"Malformed submission: {e.error_count()} invalid field(s)") from e

        host = request.headers.get("x-forwarded-host") or request.headers.get("host", "")
        referer = request.headers.get("referer", "")
        site = resolve_site(
            submission.site,
            request.query_params.get("site"),
            host,
            referer,
            settings.default_site,
        )

        record = build_record(submission, site, settings.default_site)
        encoded = encode_record(record, diagnostics={
            "userAgent": request.headers.get("user-agent", ""),
            "ip": _client_ip(request),
            "host": host,
            "referer": referer,
        })
        issue = await request.app.state.github.create_issue(encoded)

        logger.info("Lead submitted", site=record.site, type=record.consultation_type.value, issue=issue.number)
        return {
            "ok": True,
            "site": record.site,
            "type": record.consultation_type.value,
            "issue": {"number": issue.number, "url": issue.html_url},
        }

    @app.get("/api/admin/list")
    async def list_leads(
        request: Request,
        site: Optional[str] = Query(None, description="Exact site filter"),
        type: Optional[str] = Query(None, description="phone or online"),
        date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD (UTC)"),
        date_to: Optional[str] = Query(None, alias="to", description="YYYY-MM-DD (UTC)"),
        label: Optional[str] = Query(None, description="GitHub label pre-filter, comma separated"),
        format: str = Query("json", pattern="^(csv|json)$"),
        download: bool = False,
    ):
        """List decoded leads (JSON by default)."""
        rows = await collect_rows(request, site, type, date_from, date_to, label)
        return render(rows, format, download)

    @app.get("/api/admin/export")
    async def export_leads(
        request: Request,
        site: Optional[str] = Query(None, description="Exact site filter"),
        type: Optional[str] = Query(None, description="phone or online"),
        date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD (UTC)"),
        date_to: Optional[str] = Query(None, alias="to", description="YYYY-MM-DD (UTC)"),
        label: Optional[str] = Query(None, description="GitHub label pre-filter, comma separated"),
        format: str = Query("csv", pattern="^(csv|json)$"),
        download: bool = True,
    ):
        """Export decoded leads (CSV attachment by default)."""
        rows = await collect_rows(request, site, type, date_from, date_to, label)
        return render(rows, format, download)

    @app.get("/api/ping")
    async def ping(request: Request):
        return {"ok": True, "ts": datetime.now(timezone.utc).isoformat(), "path": request.url.path}

    @app.get("/api/version")
    async def version():
        ver = {"ts": datetime.now(timezone.utc).isoformat(), **get_version_info()}
        return JSONResponse(content={"ok": True, "ver": ver}, headers=NO_STORE)

    @app.get("/api/netcheck")
    async def netcheck():
        """GitHub reachability and remaining rate limit."""
        settings: Settings = app.state.settings
        try:
            core = await app.state.github.rate_limit()
        except GitHubAPIError as e:
            return {"ok": False, "repo": settings.repo_full_name, "core": None, "error": e.message}
        return {"ok": True, "repo": settings.repo_full_name, "core": core}

    @app.get("/api/debug")
    async def debug():
        """Which required settings are present (never their values)."""
        return {
            "ok": True,
            "ts": datetime.now(timezone.utc).isoformat(),
            "env": app.state.settings.env_presence(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
