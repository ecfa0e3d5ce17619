from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn # For the if __name__ == "__main__": block
import logging
import os
from dotenv import load_dotenv
from routers import auth_router, pages_router, recipe_router, user_router
from app.services.errors import BackendError, RecipifyError
import core.config
import time, uuid, json
from datetime import datetime, timezone
from typing import Any

load_dotenv() # Load environment variables from .env file

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Recipify")
app.include_router(auth_router.router)
app.include_router(user_router.router)
app.include_router(recipe_router.router)
app.include_router(pages_router.router)


# --------- tiny helpers for rails ---------
def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_log(level: str, **fields: Any) -> None:
    print(json.dumps({"ts": _now_iso(), "level": level, **fields}, default=str), flush=True)


# central error shape
def _error_response(request: Request, *, status_code: int, error: str, code: str) -> JSONResponse:
    rid = getattr(request.state, "req_id", None) or "unknown"
    return JSONResponse(status_code=status_code, content={"error": error, "code": code, "trace": rid}, headers={"X-Req-Id": rid})


# CORS Configuration
origins = [
    "http://localhost:3000",  # Common React dev port
    "http://localhost:5173",  # Common Vite dev port
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "X-Req-Id"],
    expose_headers=["X-Req-Id"],
)


@app.middleware("http")
async def _reqid_and_access_log(request: Request, call_next):
    # 1) assign/propagate req-id
    req_id = request.headers.get("X-Req-Id") or str(uuid.uuid4())
    request.state.req_id = req_id

    # 2) timing  path/method
    start = time.perf_counter()
    path = request.url.path
    method = request.method
    status = 500
    response = None
    try:
        response = await call_next(request)
        status = getattr(response, "status_code", 500)
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000.0, 2)
        _json_log("info", reqId=req_id, method=method, path=path, status=status, latency=latency_ms)
        # always echo the req-id (even on exceptions handled later)
        if response is not None:
            response.headers["X-Req-Id"] = req_id


# ---------- exception handlers: consistent error shape ----------
@app.exception_handler(HTTPException)
async def _http_exc_handler(request: Request, exc: HTTPException):
    response = _error_response(request, status_code=exc.status_code, error=str(exc.detail), code=f"HTTP_{exc.status_code}")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError):
    _json_log("warn", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=422, validationErrors=exc.errors())
    return _error_response(request, status_code=422, error="Validation failed", code="VALIDATION_ERROR")


@app.exception_handler(RecipifyError)
async def _domain_handler(request: Request, exc: RecipifyError):
    if exc.status_code >= 500:
        _json_log("error", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=exc.status_code, msg=exc.message)
    return _error_response(request, status_code=exc.status_code, error=exc.message, code=exc.code)


@app.exception_handler(BackendError)
async def _backend_handler(request: Request, exc: BackendError):
    # backend 4xx are passed through; anything else is a bad gateway
    status_code = exc.code if exc.code and 400 <= exc.code < 500 else 502
    _json_log("error", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=status_code,
              backendCode=exc.code, backendType=exc.type, msg=exc.message)
    return _error_response(request, status_code=status_code, error="Backend service error", code=f"BACKEND_{status_code}")


@app.exception_handler(Exception)
async def _unhandled_handler(request: Request, exc: Exception):
    _json_log("error", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=500, msg=exc.__class__.__name__)
    return _error_response(request, status_code=500, error="Internal Server Error", code="INTERNAL_SERVER_ERROR")


# ---------------- Health & Readiness ----------------
@app.get("/healthz")
def healthz():
    return {
        "status": "ok",
        "app": "recipify",
        "commit": os.getenv("GIT_SHA", "dev"),
        "time": _now_iso(),
    }


def _deps_status():
    deps = {}
    deps["backend"] = "ok" if core.config.is_backend_ready() else "not_initialized"
    return deps


@app.get("/readyz")
def readyz():
    deps = _deps_status()
    overall = "ready" if deps.get("backend") == "ok" else "degraded"
    return {"status": overall, "app": "recipify", "time": _now_iso(), "deps": deps}


@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup event triggered.")
    await core.config.init_supabase()
    if not core.config.is_backend_ready():
        logger.error("Backend client IS STILL NONE after init_supabase() call. CHECK CONFIG ERRORS.")


@app.get("/")
async def root():
    return {"message": "Welcome to Recipify API!"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000)) # Default to 8000 if PORT not set
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
