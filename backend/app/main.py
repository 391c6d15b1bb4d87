import uuid
import time
import json
import logging
from datetime import datetime
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import resolved_storage_backend, settings
from app.routers import admin, assistant, auth, health, me, quizzes


def create_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app = FastAPI(title="AU Assess API", version="1.0.0")

    logger = logging.getLogger("au_assess")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    allow_origins = [o.strip() for o in str(settings.cors_allow_origins or "").split(",") if o.strip()]
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")

    is_prod = (settings.app_env or "").strip().lower() in {"prod", "production"}

    def _parse_csv(value: str) -> list[str]:
        return [x.strip() for x in str(value or "").split(",") if x.strip()]

    allow_methods_raw = str(settings.cors_allow_methods or "*").strip()
    allow_headers_raw = str(settings.cors_allow_headers or "*").strip()
    if is_prod:
        if allow_methods_raw == "*":
            allow_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
        else:
            allow_methods = _parse_csv(allow_methods_raw)

        if allow_headers_raw == "*":
            allow_headers = ["authorization", "content-type", "x-request-id"]
        else:
            allow_headers = _parse_csv(allow_headers_raw)
    else:
        allow_methods = ["*"] if allow_methods_raw == "*" else _parse_csv(allow_methods_raw)
        allow_headers = ["*"] if allow_headers_raw == "*" else _parse_csv(allow_headers_raw)

    def _error(status_code: int, error_code: str, error_message: str, rid: str | None, headers=None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={
                "ok": False,
                "error_code": error_code,
                "error_message": error_message,
                "request_id": rid,
            },
            headers=headers,
        )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            origin = (request.headers.get("origin") or "").strip()
            if request.method in {"POST", "PUT", "DELETE"} and origin and origin not in allow_origins:
                response = _error(403, "forbidden", "invalid origin", rid)
            else:
                response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            path = request.url.path
            if not path.startswith("/health"):
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.utcnow().isoformat(),
                            "rid": rid,
                            "user_id": getattr(request.state, "user_id", None),
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": dur_ms,
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=()")
        if is_prod:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    def _request_id(request: Request) -> str | None:
        rid = getattr(getattr(request, "state", None), "request_id", None)
        rid = str(rid or "").strip()
        return rid or None

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = str(detail.get("error_code") or "http_error")
            error_message = str(detail.get("error_message") or detail.get("detail") or "request failed")
        else:
            status = int(exc.status_code)
            error_code = {401: "unauthorized", 403: "forbidden", 404: "not_found", 429: "rate_limited"}.get(
                status, "http_error"
            )
            error_message = str(detail or "request failed")
        return _error(int(exc.status_code), error_code, error_message, _request_id(request), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        first = next(iter(exc.errors()), {})
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = str(first.get("msg") or "invalid request")
        return _error(422, "validation_error", f"{where}: {message}" if where else message, _request_id(request))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("unhandled exception", extra={"rid": rid})
        return _error(500, "internal_error", "internal server error", rid)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=allow_methods,
        allow_headers=allow_headers,
    )

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(quizzes.router)
    app.include_router(me.router)
    app.include_router(assistant.router)
    app.include_router(admin.router)

    logger.info("au_assess api ready storage=%s env=%s", resolved_storage_backend(), settings.app_env)
    return app


app = create_app()
