# accessly/app.py

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from accessly.exceptions import AccesslyError
from accessly.routes import (
    ai_router,
    analysis_router,
    fixes_router,
    health_router,
    pdfs_router,
)
from accessly.settings import cors_origins
from accessly.storage import StorageConfig
from accessly.utils.app_helpers import SafeJSONResponse, mount_static_if_available

# ----------------------
# Logging & Config
# ----------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("accessly-backend")

load_dotenv()

# ----------------------
# FastAPI app + CORS
# ----------------------
app = FastAPI(title="Accessly PDF Accessibility API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AccesslyError)
async def handle_service_error(request: Request, exc: AccesslyError):
    if exc.status_code >= 500:
        logger.error("[Backend] %s %s failed: %s", request.method, request.url.path, exc.message)
    return SafeJSONResponse(exc.to_payload(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return SafeJSONResponse(
        {"success": False, "error": "Invalid request", "details": exc.errors()},
        status_code=400,
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("[Backend] Unhandled error on %s %s", request.method, request.url.path)
    return SafeJSONResponse({"success": False, "error": "Internal server error"}, status_code=500)


# serve locally stored files (development only; Supabase is canonical)
_storage_config = StorageConfig.from_env()
if _storage_config.driver.lower() == "local":
    mount_static_if_available(
        app, _storage_config.public_base_url, str(_storage_config.local_root), "files"
    )

app.include_router(health_router)
app.include_router(analysis_router)
app.include_router(fixes_router)
app.include_router(ai_router)
app.include_router(pdfs_router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 5000))
    uvicorn.run("accessly.app:app", host="0.0.0.0", port=port, reload=True)
