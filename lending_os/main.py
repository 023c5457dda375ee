from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from lending_os import __version__
from lending_os.api.v1 import api_router
from lending_os.core.errors import register_exception_handlers
from lending_os.core.limiter import limiter
from lending_os.core.logging import configure_logging
from lending_os.core.response_envelope import register_response_envelope
from lending_os.core.settings import settings
from lending_os.events import register_event_handlers
from lending_os.middlewares.request_context import RequestContextMiddleware
from lending_os.middlewares.security_headers import SecurityHeadersMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Lending OS", version=__version__)
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.environment == "production")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
