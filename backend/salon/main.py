import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, cast

from fastapi import FastAPI, Request, Response, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse

from .database import dispose_engine
from .domain.errors import DomainError
from .routers import admin, reservations, services, slots
from .routers.errors import to_http_exception
from .utils.request_id import REQUEST_ID_HEADER, get_request_id, resolve_request_id, set_request_id

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await dispose_engine()


app = FastAPI(title="Salon Booking API", lifespan=lifespan)


async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def domain_error_handler(request: Request, exc: Exception) -> Response:
    return await http_exception_handler(request, to_http_exception(cast(DomainError, exc)))


async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
    logger.exception("unhandled error request_id=%s path=%s", get_request_id(), request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"kind": "unexpected", "message": "internal error"}},
    )


app.middleware("http")(request_id_middleware)
app.add_exception_handler(DomainError, domain_error_handler)
app.add_exception_handler(Exception, unexpected_error_handler)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(services.router)
app.include_router(slots.router)
app.include_router(reservations.router)
app.include_router(admin.router)
