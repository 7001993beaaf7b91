from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from sentence_base.db import engine, init_db
from sentence_base.errors import ActionError
from sentence_base.routes import api, users
from sentence_base.services.idempotency import create_sweep_scheduler
from sentence_base.settings import ENVIRONMENT, LOG_LEVEL, SESSION_SECRET

logging.basicConfig(
    level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

IS_DEVELOPMENT = ENVIRONMENT in ("development", "dev", "local")


def error_response(status_code: int, errors: list) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "errors": errors})


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db(engine)
    sweeper = create_sweep_scheduler(engine)
    sweeper.start()
    logger.info("Event id sweep scheduled")
    yield
    sweeper.shutdown(wait=False)


app = FastAPI(title="Sentence Base", version="0.1.0", lifespan=lifespan)

app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET, same_site="lax")

app.include_router(api.router)
app.include_router(users.router)


@app.exception_handler(ActionError)
async def action_error_handler(request: Request, exc: ActionError) -> JSONResponse:
    logger.warning(
        "%s %s rejected: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message
    )
    return error_response(exc.code, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
    return error_response(
        422,
        [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()],
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, [exc.detail])


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    if IS_DEVELOPMENT:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, [f"{type(exc).__name__}: {exc}"])
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ["Internal server error."])


@app.get("/health", include_in_schema=False)
def health() -> dict:
    return {"status": "healthy"}
