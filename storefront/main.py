import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront import __version__, config
from storefront.api.response import error
from storefront.api.route import router
from storefront.constants import Messages
from storefront.db.session import create_tables
from storefront.middleware.tenant import tenant_context_middleware

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # no migration tool: the schema comes from the model metadata
    if config.AUTO_CREATE_TABLES:
        create_tables()
        logger.info("Database tables ensured")
    yield


app = FastAPI(
    title="Storefront API",
    description="Multi-tenant storefront and store administration API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _tenant_context(request: Request, call_next):
    return await tenant_context_middleware(request, call_next)


app.include_router(router)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return Messages.VALIDATION_ERROR
    first = errors[0]
    message = str(first.get("msg") or Messages.VALIDATION_ERROR)
    # pydantic prefixes messages raised from validators
    message = message.removeprefix("Value error, ")
    if first.get("type") == "missing":
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "field"
        return f"{field} is required"
    return message


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=error(message), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=error(_first_validation_message(exc)))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content=error(Messages.RESOURCE_CONFLICT))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=error(Messages.SERVER_ERROR))
