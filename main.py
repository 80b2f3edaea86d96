from contextlib import asynccontextmanager

from shared.utils import load_env

load_env()

from fastapi import FastAPI

from apps.adsheets.api.main import app as adsheets_app
from apps.adsheets.api.v1.helpers.config import (
    APP_NAME as ADSHEETS_APP_NAME,
    validate_tenant_config as validate_adsheets_tenant_config,
)
from shared.exception_handlers import register_exception_handlers
from shared.logger import log_run_end, log_run_start
from shared.middleware import (
    timing_middleware,
    request_response_logger_middleware,
    tenant_context_middleware,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_run_start()
    yield
    log_run_end()


app = FastAPI(lifespan=lifespan)
app.state.public_paths = {"/", "/ping"}
app.state.tenant_validator_registry = [
    (("/api/adsheets",), ADSHEETS_APP_NAME, validate_adsheets_tenant_config),
]
app.middleware("http")(timing_middleware)
app.middleware("http")(request_response_logger_middleware)
app.middleware("http")(tenant_context_middleware)
register_exception_handlers(app, logger_name="Root")

# Mount app-specific APIs under distinct prefixes.
app.mount("/api/adsheets", adsheets_app)


@app.get("/")
def root():
    return {"status": "ok", "apps": ["/api/adsheets"]}


@app.get("/ping")
def ping():
    return {"status": "ok"}


# =========================================================
# LOCAL DEV
# =========================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
