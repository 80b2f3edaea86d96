from contextlib import asynccontextmanager

from shared.utils import load_env

load_env()

from fastapi import FastAPI, Request

from shared.exception_handlers import register_exception_handlers
from shared.logger import log_run_end, log_run_start
from apps.adsheets.api.v1.router import router as v1_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_run_start()
    yield
    log_run_end()


app = FastAPI(title="AdSheets API", lifespan=lifespan)
app.include_router(v1_router)
register_exception_handlers(app, logger_name="AdSheets API")


@app.get("/")
def root(request: Request):
    return {
        "status": "AdSheets API",
        "tenant_id": getattr(request.state, "tenant_id", None),
    }
