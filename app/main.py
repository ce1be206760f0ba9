# -*- coding: utf-8 -*-
"""
backend/app/main.py

Punto de entrada principal del backend de compra de votos.

Ajustes clave:
- Uso de app.shared.config como fachada de configuración.
- Montaje de observabilidad Prometheus (/metrics) vía app.observability.prom
- Contenedor de billing (clientes HTTP por rail + servicios) creado en el
  lifespan y cerrado en shutdown
- Health principal /health delegado al paquete app.routes (health_routes.py)
- CORS: allow_origins desde CORS_ORIGINS, wildcard solo fuera de producción

Autor: Banter Backend
Fecha: 2026-02-18
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

# ---------------------------------------------------------------------------
# Cargar .env ANTES de cualquier import que use os.getenv
# En DEV: override=True para que .env mande sobre variables del entorno
# En PROD: override=False para respetar variables del entorno
# ---------------------------------------------------------------------------
from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
_ENVIRONMENT = os.getenv("PYTHON_ENV", "development").strip().strip('"').strip("'").lower()
load_dotenv(dotenv_path=_ENV_PATH, override=_ENVIRONMENT == "development")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.modules.billing.dependencies import BillingContainer
from app.observability.prom import setup_observability
from app.shared.config import get_payments_settings, get_settings, setup_logging
from app.shared.database.database import SessionLocal, create_all, engine
from app.shared.middleware import JSONExceptionMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ────────── STARTUP ──────────
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    if settings.db_create_all:
        await create_all()
        logger.info("db_tables_ready mode=create_all")

    owns_container = getattr(app.state, "billing", None) is None
    if owns_container:
        app.state.billing = BillingContainer(get_payments_settings(), SessionLocal)

    logger.info("app_started name=%s env=%s version=%s", settings.app_name, settings.python_env, settings.app_version)
    try:
        yield
    finally:
        # ────────── SHUTDOWN ──────────
        if owns_container:
            await app.state.billing.aclose()
            app.state.billing = None
        await engine.dispose()
        logger.info("app_stopped name=%s", settings.app_name)


openapi_tags = [
    {"name": "billing", "description": "Compra de votos: intents, verificación y estado"},
    {"name": "billing:webhooks", "description": "Webhooks del procesador de tarjetas"},
]

app = FastAPI(
    title="Banter Votes API",
    description="Verificación y liquidación de compras de votos (tarjeta, Solana, Movement)",
    version=get_settings().app_version,
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)


# ═══════════════════════════════════════════════════════════════════════════════
# CORS
# ═══════════════════════════════════════════════════════════════════════════════
def _configure_cors(app_instance: FastAPI) -> dict:
    """
    Configura CORS middleware.

    Returns:
        dict con la configuración aplicada para logging.
    """
    settings = get_settings()
    origins_list = settings.get_cors_origins()
    is_wildcard_only = origins_list == ["*"]

    if is_wildcard_only and settings.is_prod:
        # Fail-closed: sin origins explícitos en producción no se agrega CORS
        logger.error("cors_disabled reason=wildcard_in_production")
        return {"cors_disabled": True, "allow_origins": []}

    cors_config = {
        "allow_origins": origins_list,
        # "*" con allow_credentials=True es inválido en navegadores
        "allow_credentials": not is_wildcard_only,
        "allow_methods": ["*"] if is_wildcard_only else ["GET", "POST", "OPTIONS"],
        "allow_headers": ["*"],
        "max_age": 600,
    }
    app_instance.add_middleware(CORSMiddleware, **cors_config)
    logger.info("cors_enabled origins=%s credentials=%s", origins_list, cors_config["allow_credentials"])
    return cors_config


# IMPORTANTE: el orden real de ejecución de middlewares en Starlette es inverso al registro.
# JSONExceptionMiddleware queda dentro de Prometheus; CORS se registra al final (outermost).
app.add_middleware(JSONExceptionMiddleware)
setup_observability(app)
_cors_config = _configure_cors(app)

# Incluye router maestro
from app.routes import router as main_router  # noqa: E402

app.include_router(main_router)


@app.get("/")
async def root():
    return {"service": get_settings().app_name, "status": "active"}


if __name__ == "__main__":
    settings = get_settings()
    enable_reload = settings.is_dev and os.getenv("DISABLE_RELOAD", "").lower() not in ("true", "1", "yes")

    logger.info("Starting server with reload=%s (env=%s)", enable_reload, settings.python_env)

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=enable_reload,
    )

# Fin del archivo backend/app/main.py
