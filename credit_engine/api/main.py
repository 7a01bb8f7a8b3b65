import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from credit_engine.api.middleware import request_host_middleware
from credit_engine.api.routes.admin import router as admin_router
from credit_engine.api.routes.credits import router as credits_router
from credit_engine.api.routes.fx import router as fx_router
from credit_engine.api.routes.questions import router as questions_router
from credit_engine.core.config import settings
from credit_engine.core.errors import PaymentError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Credit Engine")
app.middleware("http")(request_host_middleware)
app.include_router(questions_router, prefix="/api/v1")
app.include_router(fx_router, prefix="/api/v1")
app.include_router(credits_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    if exc.business:
        return JSONResponse(status_code=exc.status_code, content=exc.payload())

    logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    message = "Service temporarily unavailable" if exc.status_code == 503 else "Internal error"
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": message})


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
