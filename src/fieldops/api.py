"""
HTTP API for fieldops.

Thin aiohttp adapter over the service context: parses requests, calls the
core, and maps core failures to status codes.
"""

import json
from datetime import datetime, time, timezone
from typing import Optional

from aiohttp import web
from loguru import logger

from .auth import Permission
from .context import ServiceContext, build_context
from .errors import (
    Blocked,
    DuplicateIdentity,
    FieldOpsError,
    Forbidden,
    InvalidCoordinate,
    InvalidCredential,
    MissingCredential,
    MissingRequiredField,
    NotFound,
)
from .export import reports_to_csv

CONTEXT_KEY = web.AppKey("context", ServiceContext)

ERROR_STATUS = {
    MissingCredential: 401,
    InvalidCredential: 401,
    Blocked: 401,
    Forbidden: 403,
    NotFound: 404,
    DuplicateIdentity: 409,
    MissingRequiredField: 400,
    InvalidCoordinate: 400,
}


def status_for(error: FieldOpsError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json.dumps({"success": False, "error": message}),
        content_type="application/json",
    )


def source_address(request: web.Request) -> str:
    """First X-Forwarded-For hop, else the peer address, else '-'."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.remote or "-"


async def read_json(request: web.Request) -> dict:
    """Request body as a dict; an empty body reads as {}."""
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise _bad_request("Malformed JSON body")
    if not isinstance(data, dict):
        raise _bad_request("JSON body must be an object")
    return data


def _caller(request: web.Request):
    ctx = request.app[CONTEXT_KEY]
    return ctx.guard.authorize(request.headers.get("Authorization"), source_address(request))


def _int_param(request: web.Request, name: str) -> Optional[int]:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise _bad_request(f"{name} must be an integer")


def _date_param(request: web.Request, name: str, end_of_day: bool = False) -> Optional[datetime]:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise _bad_request(f"{name} must be an ISO date")
    if end_of_day and len(raw) == 10:
        value = datetime.combine(value.date(), time.max)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _email_from(request: web.Request, data: dict) -> str:
    email = str(data.get("email") or request.query.get("email") or "").strip()
    if not email:
        raise MissingRequiredField(["email"])
    return email


# ============================================================================
# Public
# ============================================================================

async def handle_health(request):
    return web.json_response({"ok": True})


async def handle_register(request):
    """
    POST /api/register
    Body: {"email", "password", "name", "rank"?, "unit"?}
    """
    ctx = request.app[CONTEXT_KEY]
    data = await read_json(request)
    identity = ctx.users.register(
        data.get("email"),
        data.get("password"),
        data.get("name"),
        rank=data.get("rank"),
        unit=data.get("unit"),
    )
    return web.json_response(
        {"success": True, "message": "Registered", "user": identity.to_dict()},
        status=201,
    )


async def handle_login(request):
    """
    POST /api/login
    Body: {"email": "...", "password": "..."}
    Returns: {"success": true, "token": "...", "user": {...}}
    """
    ctx = request.app[CONTEXT_KEY]
    data = await read_json(request)
    token, identity = ctx.users.login(
        data.get("email"),
        data.get("password"),
        source_address(request),
    )
    return web.json_response({
        "success": True,
        "token": token,
        "user": {"email": identity.email, "name": identity.name, "is_admin": identity.is_admin},
    })


# ============================================================================
# Authorized
# ============================================================================

async def handle_me(request):
    caller = _caller(request)
    return web.json_response({"success": True, "user": caller.to_dict()})


async def handle_submit_report(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    data = await read_json(request)
    report = ctx.reports.submit(caller, data)
    return web.json_response({"success": True, "id": report.report_id, "report": report.to_dict()}, status=201)


async def handle_list_reports(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    reports = ctx.reports.list(caller, limit=_int_param(request, "limit"))
    return web.json_response({"success": True, "alerts": [r.to_dict() for r in reports]})


async def handle_export_reports(request):
    """
    GET /api/reports/export?start=YYYY-MM-DD&end=YYYY-MM-DD
    Returns: text/csv of the caller's visible reports in range
    """
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    reports = ctx.reports.list_between(
        caller,
        start=_date_param(request, "start"),
        end=_date_param(request, "end", end_of_day=True),
        limit=_int_param(request, "limit"),
    )
    return web.Response(
        text=reports_to_csv(reports),
        content_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="reports.csv"'},
    )


async def handle_list_access(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    ctx.guard.require(caller, Permission.VIEW_OWN_ACCESS)
    events = ctx.audit.list(caller.role, caller.email, limit=_int_param(request, "limit"))
    return web.json_response({"success": True, "access": [e.to_dict() for e in events]})


async def handle_block(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    ctx.guard.require_admin(caller)
    email = _email_from(request, await read_json(request))
    updated = ctx.audit.block(email)
    logger.info(f"{caller.email} blocked {email}")
    return web.json_response({"success": True, "updated": updated})


async def handle_unblock(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    ctx.guard.require_admin(caller)
    email = _email_from(request, await read_json(request))
    lifted = ctx.audit.unblock(email)
    logger.info(f"{caller.email} unblocked {email}")
    return web.json_response({"success": True, "unblocked": lifted})


async def handle_delete_access(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    ctx.guard.require_admin(caller)
    email = _email_from(request, await read_json(request))
    removed = ctx.audit.delete(email)
    logger.info(f"{caller.email} purged access history of {email}")
    return web.json_response({"success": True, "removed": removed})


async def handle_upsert_position(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    data = await read_json(request)
    position = ctx.presence.upsert(caller, data.get("lat"), data.get("lng"), data.get("color"))
    return web.json_response({"success": True, "position": position.to_dict()})


async def handle_list_positions(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    ctx.guard.require(caller, Permission.VIEW_POSITIONS)
    positions = ctx.presence.list()
    return web.json_response({"success": True, "positions": [p.to_dict() for p in positions]})


async def handle_remove_position(request):
    ctx = request.app[CONTEXT_KEY]
    caller = _caller(request)
    removed = ctx.presence.remove(caller.email)
    return web.json_response({"success": True, "removed": removed})


# ============================================================================
# Middleware
# ============================================================================

@web.middleware
async def error_middleware(request, handler):
    """Translate core failures into JSON error responses."""
    try:
        return await handler(request)
    except FieldOpsError as e:
        status = status_for(e)
        logger.debug(f"{request.method} {request.path} -> {status}: {e}")
        return _error(str(e), status)


def _add_cors_headers(request, response) -> None:
    origin = request.headers.get("Origin")
    response.headers["Access-Control-Allow-Origin"] = origin or "*"
    if origin:
        response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"


@web.middleware
async def cors_middleware(request, handler):
    """Add CORS headers to all responses, including aiohttp HTTP errors."""
    if request.method == "OPTIONS":
        # Preflight request
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            _add_cors_headers(request, e)
            raise

    _add_cors_headers(request, response)
    return response


def create_app(context: Optional[ServiceContext] = None) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        context: Service context to serve (default: built from environment)
    """
    if context is None:
        context = build_context()

    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[CONTEXT_KEY] = context

    app.router.add_get("/api/health", handle_health)
    app.router.add_post("/api/register", handle_register)
    app.router.add_post("/api/login", handle_login)
    app.router.add_get("/api/me", handle_me)

    app.router.add_post("/api/reports", handle_submit_report)
    app.router.add_get("/api/reports", handle_list_reports)
    app.router.add_get("/api/reports/export", handle_export_reports)
    app.router.add_get("/api/admin/alerts", handle_list_reports)

    app.router.add_get("/api/admin/access", handle_list_access)
    app.router.add_post("/api/admin/access/block", handle_block)
    app.router.add_post("/api/admin/access/unblock", handle_unblock)
    app.router.add_delete("/api/admin/access", handle_delete_access)

    app.router.add_post("/api/positions", handle_upsert_position)
    app.router.add_get("/api/positions", handle_list_positions)
    app.router.add_delete("/api/positions", handle_remove_position)

    return app
