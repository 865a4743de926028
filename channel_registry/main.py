import logging
import os
from typing import Dict

from fastapi import Depends, FastAPI, Request
from starlette.responses import JSONResponse

from . import admin_routes, repair_routes, username_routes
from .config import Settings, get_settings
from .errors import RegistryError
from .logging_config import configure_logging


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Channel Username Registry", version="0.1.0")

app.include_router(admin_routes.router)
app.include_router(repair_routes.router)
app.include_router(username_routes.chat_router)
app.include_router(username_routes.users_router)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "database": "configured" if settings.database_url else "missing"}


def run() -> None:
    import uvicorn

    host = os.getenv("CHANNEL_HOST", "0.0.0.0")
    port = int(os.getenv("CHANNEL_PORT", "8000"))
    logger.info("Starting registry API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run()
