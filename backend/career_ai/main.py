import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from career_ai.api.deps import default_kv
from career_ai.api.errors import MSG_BAD_REQUEST, MSG_UNEXPECTED
from career_ai.api.routes import admin, analyze, auth, chat, interview, meta, mock_interview, resume, share
from career_ai.core.config import settings
from career_ai.core.database import Base, engine
from career_ai.models import entities  # noqa: F401  registers tables on Base

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("career_ai")


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    default_kv.purge_expired()
    yield


app = FastAPI(title="Career AI API", version="0.1.0", lifespan=lifespan)

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-Id"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_: Request, exc: StarletteHTTPException):
    body: dict = {"error": exc.detail}
    if isinstance(exc.detail, dict):
        body = {"error": exc.detail.get("message", MSG_UNEXPECTED)}
        if "retry_after_seconds" in exc.detail:
            body["retry_after_seconds"] = exc.detail["retry_after_seconds"]
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError):
    logger.info("Rejected request body: %s", exc.errors())
    return JSONResponse({"error": MSG_BAD_REQUEST}, status_code=400)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": MSG_UNEXPECTED}, status_code=500)


def _register_routes(prefix: str = "/api") -> None:
    app.include_router(analyze.router, tags=["diagnosis"], prefix=prefix)
    app.include_router(chat.router, tags=["chat"], prefix=prefix)
    app.include_router(interview.router, tags=["interview"], prefix=prefix)
    app.include_router(mock_interview.router, tags=["mock-interview"], prefix=prefix)
    app.include_router(share.router, tags=["share"], prefix=prefix)
    app.include_router(resume.router, tags=["resume"], prefix=prefix)
    app.include_router(auth.router, tags=["auth"], prefix=prefix)
    app.include_router(admin.router, tags=["admin"], prefix=prefix)
    app.include_router(meta.router, tags=["meta"], prefix=prefix)


_register_routes()
