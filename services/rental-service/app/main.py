from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import SERVICE_NAME
from .deps import locks, metrics
from .errors import ConcurrencyConflictError, RentalError
from .middleware import RequestLoggingMiddleware
from .rabbitmq import publisher
from .redis_client import redis_client
from .routes import router

app = FastAPI(title="Rental Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError):
    request.state.error_code = exc.code
    headers = {"Retry-After": "1"} if isinstance(exc, ConcurrencyConflictError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
        headers=headers,
    )


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "events_enabled": publisher.enabled,
        "redis_enabled": redis_client is not None,
        "lock_mode": type(locks).__name__,
        "metrics_sink": type(metrics).__name__,
    }


@app.on_event("startup")
async def startup():
    if redis_client is None:
        print(f"[{SERVICE_NAME}] REDIS_URL not set; using in-process vehicle locks (single worker only)")

    # Never crash service if RabbitMQ is temporarily unavailable
    try:
        await publisher.connect()
    except Exception as e:
        print(f"[{SERVICE_NAME}] RabbitMQ connect failed at startup; continuing without events: {e}")


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception as e:
        print(f"[{SERVICE_NAME}] RabbitMQ close failed: {e}")
    if redis_client is not None:
        await redis_client.aclose()
