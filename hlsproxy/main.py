from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import sys
import logging
import traceback
from datetime import datetime

from hlsproxy.config.settings import load_settings
from hlsproxy.routers import keys, proxy
from hlsproxy.schemas.keys import HealthResponse
from hlsproxy.utils.key_store import KeyStore
from hlsproxy.utils.services import build_services, get_key_store

__version__ = "1.0.0"

settings = load_settings()

FILE_LOG_ENABLED = False

handlers = []

# Always log to console
console_handler = logging.StreamHandler(sys.stdout)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
console_handler.setFormatter(formatter)
handlers.append(console_handler)

if settings.log_to_file:
    try:
        os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
        FILE_LOG_ENABLED = True
    except OSError:
        # Console-only when the file cannot be opened (read-only filesystems)
        FILE_LOG_ENABLED = False

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    handlers=handlers
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="HLS DRM Proxy",
    description="HLS reverse proxy with server-side key derivation and segment decryption",
    version=__version__
)

# allow_credentials must stay False with wildcard origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.state.services = build_services(settings)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request line and the response status with elapsed time"""
    start_time = datetime.now()
    logger.info(f"🔍 REQUEST: {request.method} {request.url.path}")

    response = await call_next(request)

    process_time = (datetime.now() - start_time).total_seconds()
    logger.info(f"✅ RESPONSE: {response.status_code} for {request.url.path} in {process_time:.3f}s")
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Turn anything unexpected into a 500 JSON body instead of a dropped connection"""
    logger.error("🚨 GLOBAL EXCEPTION HANDLER TRIGGERED")
    logger.error(f"   Request: {request.method} {request.url.path}")
    logger.error(f"   Exception Type: {type(exc).__name__}")
    logger.error(f"   Exception Message: {str(exc)}")
    logger.error(traceback.format_exc())

    return JSONResponse(
        status_code=500,
        content={
            "error": "Unhandled Exception",
            "message": str(exc),
            "type": type(exc).__name__,
            "timestamp": datetime.now().isoformat(),
            "path": request.url.path,
        }
    )


app.include_router(keys.router, prefix="", tags=["keys"])
app.include_router(proxy.router, prefix="", tags=["proxy"])


@app.on_event("startup")
async def startup_diagnostics():
    services = app.state.services
    exchange = type(services.key_deriver.exchange).__name__
    logger.info(f"🔧 Startup: key exchange={exchange}, origin timeout={services.settings.origin_timeout}s")


@app.get("/")
async def root():
    return {"message": "HLS DRM Proxy", "version": __version__}


@app.get("/health", response_model=HealthResponse)
def health(key_store: KeyStore = Depends(get_key_store)):
    return HealthResponse(status="ok", cachedKeys=len(key_store))


@app.get("/debug/status")
async def get_debug_status(request: Request):
    """Endpoint to check server status and configuration"""
    services = request.app.state.services
    return {
        "status": "running",
        "timestamp": datetime.now().isoformat(),
        "environment": services.settings.public_view(),
        "keyExchange": type(services.key_deriver.exchange).__name__,
        "cachedKeys": len(services.key_store),
        "logging": {
            "file_enabled": FILE_LOG_ENABLED,
            "log_file_path": services.settings.log_file,
        },
    }
