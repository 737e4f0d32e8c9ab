import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


class CatchAllExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "%s on %s (500): %s",
                type(exc).__name__,
                request.url.path,
                exc,
                exc_info=True,
                extra={
                    "request_id": request.headers.get("x-request-id"),
                    "http_method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                },
            )
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "internal_error", "detail": str(exc)},
            )


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "validation_error",
            "detail": "; ".join(
                f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
                for err in exc.errors()
            ),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_middleware(CatchAllExceptionMiddleware)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
