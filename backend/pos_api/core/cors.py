"""
CORS for the terminal UI.

During development the POS screens come from a local dev server; in
production ALLOWED_ORIGINS lists the venue's own hosts.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import Settings, settings
from shared.infrastructure.correlation import REQUEST_ID_HEADER, STAFF_ID_HEADER

DEV_UI_PORTS = (5173, 3000)


def cors_origins(config: Settings = settings) -> list[str]:
    """ALLOWED_ORIGINS (comma-separated), or the local UI dev servers when unset."""
    configured = [origin.strip() for origin in config.allowed_origins.split(",") if origin.strip()]
    if configured:
        return configured
    return [f"http://{host}:{port}" for host in ("localhost", "127.0.0.1") for port in DEV_UI_PORTS]


def configure_cors(app: FastAPI, config: Settings = settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(config),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Accept", REQUEST_ID_HEADER, STAFF_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=0 if config.debug else 600,
    )
