from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.admin import router as admin_router
from portal.api.auth import router as auth_router
from portal.api.chat import router as chat_router
from portal.api.community import router as community_router
from portal.api.curriculum import router as curriculum_router
from portal.api.health import router as health_router
from portal.api.me import router as me_router
from portal.core.errors import (
    PortalHTTPError,
    http_exception_handler,
    portal_http_error_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from portal.core.logging import DOMAIN_GATEWAY, configure_logging, get_domain_logger
from portal.core.settings import settings


configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(me_router)
app.include_router(community_router)
app.include_router(admin_router)
app.include_router(curriculum_router)
app.include_router(chat_router)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(PortalHTTPError, portal_http_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
async def on_startup():
    missing = settings.missing_backend_config()
    if missing:
        get_domain_logger(__name__, DOMAIN_GATEWAY).warning(
            "workflow backend not configured; portal actions will fail | missing=%s", ",".join(missing)
        )
