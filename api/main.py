"""
A11y Persona Scanner API — Main Application

GET  /health                          — Health check
GET  /personas                        — List personas
GET  /personas/lookup?personas=a,b    — Get personas by id or title
POST /personas/{persona_id}/analyze   — Propose (or apply) rule-set growth
POST /scan/script                     — Review a support script
POST /scan/requirements               — Review product requirements
GET  /rules                           — Current rule set
PUT  /rules                           — Merge or replace rules
POST /rules/reload                    — Reload rules from disk
GET  /rules/persona-audit             — Persona ids referenced vs. catalog
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from a11ypersona import __version__
from a11ypersona.auth import API_KEY_HEADER, auth_enabled, check_api_key, require_api_key
from a11ypersona.config import settings
from a11ypersona.detector import PersonaScanner
from a11ypersona.errors import ConfigError, PersistenceError, ValidationError
from a11ypersona.logging import get_logger, setup_logging
from a11ypersona.personas import format_persona
from a11ypersona.schemas.scan import (
    AnalyzeRequest,
    AnalyzeResponse,
    HealthResponse,
    PersonaAuditResponse,
    PersonaListResponse,
    PersonaLookupResponse,
    RequirementsScanRequest,
    RuleSetResponse,
    RuleUpdateRequest,
    RuleUpdateResponse,
    ScanResponse,
    ScriptScanRequest,
)

logger = get_logger("api")


# Built from settings on first use; tests override get_scanner
_scanner: Optional[PersonaScanner] = None


def get_scanner() -> PersonaScanner:
    global _scanner
    if _scanner is None:
        _scanner = PersonaScanner.from_settings()
    return _scanner


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("A11y Persona Scanner API starting", extra={"path": settings.PATTERNS_PATH})
    if not auth_enabled():
        logger.warning("No A11Y_API_KEYS configured; rule-set mutations are unauthenticated.")
    yield
    logger.info("A11y Persona Scanner API shutting down")


app = FastAPI(
    title="A11y Persona Scanner API",
    description="Accessibility persona catalog and rule-based barrier scanner",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["X-API-Key", "Content-Type", "Authorization"],
    allow_credentials=False,
)


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "valid_ids": exc.valid_ids},
    )


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.warning("Rule set unavailable for update", extra={"error": str(exc), "path": request.url.path})
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Rule set persistence failed", extra={"error": str(exc), "path": request.url.path})
    return JSONResponse(
        status_code=503,
        content={"detail": "Rule set could not be saved. No changes were applied."},
    )


@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. The request could not be completed."},
    )


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", response_model=HealthResponse)
async def health(scanner: PersonaScanner = Depends(get_scanner)):
    """Health check — no auth required."""
    ruleset = scanner.store.snapshot()
    error = scanner.store.load_error
    return {
        "status": "degraded" if error else "operational",
        "version": __version__,
        "rules": len(ruleset.rules),
        "contextual_checks": len(ruleset.checks),
        "personas": len(scanner.registry),
        "rules_load_error": str(error) if error else None,
    }


@app.get("/personas", response_model=PersonaListResponse)
async def list_personas(scanner: PersonaScanner = Depends(get_scanner)):
    personas = scanner.list_personas()
    return {"count": len(personas), "personas": personas}


@app.get("/personas/lookup", response_model=PersonaLookupResponse)
async def get_personas(
    personas: str = Query(..., min_length=1, description="Comma-separated persona ids or titles"),
    scanner: PersonaScanner = Depends(get_scanner),
):
    queries = [p.strip() for p in personas.split(",") if p.strip()]
    result = scanner.get_personas(queries)
    details = [
        {"id": p.id, "title": p.title, "markdown": format_persona(p)}
        for p in result["personas"]
    ]
    return {
        "count": len(details),
        "personas": details,
        "not_found": result["not_found"],
        "available": result["available"],
    }


@app.post("/personas/{persona_id}/analyze", response_model=AnalyzeResponse)
def analyze_persona(
    persona_id: str,
    request: Optional[AnalyzeRequest] = None,
    api_key: Optional[str] = Security(API_KEY_HEADER),
    scanner: PersonaScanner = Depends(get_scanner),
):
    """Propose rule-set changes for a persona. auto_apply writes them to the store."""
    auto_apply = bool(request and request.auto_apply)
    key_id = check_api_key(api_key) if auto_apply else None
    result = scanner.analyze_persona(persona_id, auto_apply=auto_apply)
    if result["applied"]:
        logger.info("Persona analysis applied", extra={"persona_id": persona_id, "key_id": key_id})
    return result


@app.post("/scan/script", response_model=ScanResponse)
def scan_script(
    request: ScriptScanRequest,
    scanner: PersonaScanner = Depends(get_scanner),
):
    report = scanner.scan_script(
        request.text,
        script_type=request.script_type,
        issue_category=request.issue_category,
        personas=request.personas,
    )
    return report.to_dict()


@app.post("/scan/requirements", response_model=ScanResponse)
def scan_requirements(
    request: RequirementsScanRequest,
    scanner: PersonaScanner = Depends(get_scanner),
):
    report = scanner.scan_requirements(request.text, personas=request.personas)
    return report.to_dict()


@app.get("/rules", response_model=RuleSetResponse)
async def get_rules(scanner: PersonaScanner = Depends(get_scanner)):
    return scanner.store.snapshot().to_dict()


@app.put("/rules", response_model=RuleUpdateResponse)
def update_rules(
    request: RuleUpdateRequest,
    key_id: Optional[str] = Depends(require_api_key),
    scanner: PersonaScanner = Depends(get_scanner),
):
    result = scanner.update_rules(
        rules=request.rules, checks=request.contextualChecks, replace=request.replace,
    )
    logger.info(
        f"Rules updated via API: {result['rules']} rules, {result['checks']} checks",
        extra={"key_id": key_id},
    )
    return result


@app.post("/rules/reload")
async def reload_rules(
    key_id: Optional[str] = Depends(require_api_key),
    scanner: PersonaScanner = Depends(get_scanner),
):
    return scanner.reload_rules()


@app.get("/rules/persona-audit", response_model=PersonaAuditResponse)
async def persona_audit(scanner: PersonaScanner = Depends(get_scanner)):
    return scanner.audit_persona_references()


# --- Security + Version Headers Middleware ---
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-A11y-Scanner-Version"] = __version__
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# --- Request Body Size Limit ---
@app.middleware("http")
async def enforce_body_size_limit(request: Request, call_next):
    """Reject bodies over MAX_BODY_BYTES, by Content-Length or by actual size."""
    too_large = JSONResponse(status_code=413, content={"detail": "Request body too large."})
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.MAX_BODY_BYTES:
        return too_large

    # Chunked uploads carry no Content-Length
    if request.method in ("POST", "PUT"):
        body = await request.body()
        if len(body) > settings.MAX_BODY_BYTES:
            return too_large

    return await call_next(request)


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response
