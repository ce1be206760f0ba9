# -*- coding: utf-8 -*-
"""
backend/tests/conftest.py

Config global de tests.

- Variables de entorno de prueba ANTES de importar la app (settings cacheados)
- Base SQLite en memoria por test (StaticPool) con create_all
- Fábricas de usuarios e intents
- Cliente httpx contra la app (ASGITransport + asgi-lifespan) con el
  contenedor de billing armado sobre httpx.MockTransport
"""

import os

from tests.factories import (
    FLUTTERWAVE_BASE_URL,
    MOVEMENT_ASSET,
    MOVEMENT_FALLBACK,
    MOVEMENT_PRIMARY,
    MOVEMENT_RECEIVER,
    PAYER_MOVEMENT,
    PAYER_SOLANA,
    SOLANA_FALLBACK,
    SOLANA_MINT,
    SOLANA_PRIMARY,
    SOLANA_RECEIVER,
)

# -----------------------------------------------------------------------------
# 0) Entorno de pruebas (antes de cualquier import de app.*)
# -----------------------------------------------------------------------------
os.environ["PYTHON_ENV"] = "test"
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-banter-votes-suite-0123456789"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["FLUTTERWAVE_SECRET_KEY"] = "FLWSECK_TEST-abc123"
os.environ["FLUTTERWAVE_WEBHOOK_HASH"] = "test-webhook-hash"
os.environ["FLUTTERWAVE_BASE_URL"] = FLUTTERWAVE_BASE_URL
os.environ["SOLANA_RPC_URL"] = SOLANA_PRIMARY
os.environ["SOLANA_RPC_FALLBACK"] = SOLANA_FALLBACK
os.environ["SOLANA_USDC_MINT"] = SOLANA_MINT
os.environ["SOLANA_USDC_RECEIVER"] = SOLANA_RECEIVER
os.environ["MOVEMENT_TESTNET_RPC"] = MOVEMENT_PRIMARY
os.environ["MOVEMENT_TESTNET_RPC_FALLBACK"] = MOVEMENT_FALLBACK
os.environ["MOVEMENT_USDC_ADDRESS"] = MOVEMENT_ASSET
os.environ["MOVEMENT_USDC_RECEIVER"] = MOVEMENT_RECEIVER
os.environ["APTOS_WALLET_ENCRYPTION_KEY"] = "test-custody-secret"
os.environ.pop("VOTE_BUNDLES_JSON", None)
os.environ.pop("PAYMENTS_ALLOW_INSECURE_WEBHOOKS", None)

from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from app.modules.accounts.models import AppUser
from app.modules.billing.enums import PaymentRail
from app.modules.billing.models import PaymentIntent
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.billing.vote_bundles import resolve_bundle
from app.shared.config.settings_payments import PaymentsSettings
from app.shared.core.http_retry_utils import RetryPolicy
from app.shared.database.database import build_engine, build_sessionmaker, create_all


@pytest.fixture
def anyio_backend():
    # Permite usar @pytest.mark.anyio en tests async
    return "asyncio"


@pytest.fixture
def payments_settings() -> PaymentsSettings:
    return PaymentsSettings(_env_file=None)


# -----------------------------------------------------------------------------
# 1) Base de datos
# -----------------------------------------------------------------------------
@pytest.fixture
async def db_engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_sessionmaker(db_engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# -----------------------------------------------------------------------------
# 2) Fábricas
# -----------------------------------------------------------------------------
async def _create_user(session, user_id: str = "u1", **overrides: Any) -> AppUser:
    values: Dict[str, Any] = {
        "user_id": user_id,
        "email": f"{user_id}@example.com",
        "username": user_id,
        "solana_address": PAYER_SOLANA,
        "movement_address": PAYER_MOVEMENT,
        "vote_balance": 0,
    }
    values.update(overrides)
    user = AppUser(**values)
    session.add(user)
    await session.commit()
    return user


async def _create_intent(
    session,
    *,
    user_id: str = "u1",
    rail: PaymentRail = PaymentRail.ACCOUNT_CHAIN,
    bundle_id: str = "b1",
    amount_raw: Optional[str] = None,
    **overrides: Any,
) -> PaymentIntent:
    bundle = resolve_bundle(bundle_id)
    defaults: Dict[PaymentRail, Dict[str, Any]] = {
        PaymentRail.ACCOUNT_CHAIN: {
            "payer_address": PAYER_SOLANA,
            "receiver_address": SOLANA_RECEIVER,
            "amount_raw": str(bundle.credits * 1_000_000),
            "currency": "USDC",
            "asset_identifier": SOLANA_MINT,
        },
        PaymentRail.MOVE_CHAIN: {
            "payer_address": PAYER_MOVEMENT,
            "receiver_address": MOVEMENT_RECEIVER,
            "amount_raw": str(bundle.credits * 1_000_000),
            "currency": "USDC",
            "asset_identifier": MOVEMENT_ASSET,
        },
        PaymentRail.CARD: {
            "payer_address": f"{user_id}@example.com",
            "receiver_address": "FLUTTERWAVE",
            "amount_raw": str(int(bundle.price * 100)),
            "currency": "USD",
            "asset_identifier": "USD",
            "provider_reference": f"BANTER_{user_id}_1700000000000",
        },
    }
    kwargs = dict(defaults[rail])
    if amount_raw is not None:
        kwargs["amount_raw"] = amount_raw
    kwargs.update(overrides)
    intent = await PaymentIntentRepository().create(
        session,
        user_id=user_id,
        bundle=bundle,
        rail=rail,
        **kwargs,
    )
    await session.commit()
    return intent


@pytest.fixture
def make_user() -> Callable:
    return _create_user


@pytest.fixture
def make_intent() -> Callable:
    return _create_intent


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def no_sleep():
    return _no_sleep


# -----------------------------------------------------------------------------
# 3) Rails simulados (httpx.MockTransport)
# -----------------------------------------------------------------------------
def _route_key(request: httpx.Request) -> tuple:
    url = f"{request.url.scheme}://{request.url.host}{request.url.path}".rstrip("/")
    return request.method, url


class RailRouter:
    """
    Handler único para httpx.MockTransport: cada test registra respuestas
    por (método, scheme://host/path) o un callable que recibe el request.
    Lo no registrado responde 503.
    """

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, url: str, response: Any) -> None:
        self.routes[(method.upper(), url.rstrip("/"))] = response

    def calls_to(self, url: str) -> List[httpx.Request]:
        url = url.rstrip("/")
        return [r for r in self.calls if _route_key(r)[1] == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(_route_key(request))
        if handler is None:
            return httpx.Response(503, json={"error": "unmocked", "url": str(request.url)})
        if callable(handler):
            return handler(request)
        return handler


@pytest.fixture
def rail_router() -> RailRouter:
    return RailRouter()


@pytest.fixture
async def billing_container(rail_router, payments_settings, session_factory):
    from app.modules.billing.dependencies import BillingContainer

    transport = httpx.MockTransport(rail_router)
    clients = [httpx.AsyncClient(transport=transport) for _ in range(3)]
    container = BillingContainer(
        payments_settings,
        session_factory,
        card_http=clients[0],
        solana_http=clients[1],
        movement_http=clients[2],
    )
    # Sin esperas entre reintentos
    container.flutterwave._sleep = _no_sleep
    container.solana_rpc._sleep = _no_sleep
    container.movement_rpc._sleep = _no_sleep
    container.movement_rpc.policy = RetryPolicy.immediate(max_attempts=2)
    yield container
    for client in clients:
        await client.aclose()


# -----------------------------------------------------------------------------
# 4) App + cliente HTTP
# -----------------------------------------------------------------------------
@pytest.fixture
def app():
    """Carga la app **después** de setear env vars."""
    from app.main import app as fastapi_app
    return fastapi_app


@pytest.fixture
async def async_client(app, billing_container, session_factory) -> AsyncIterator[AsyncClient]:
    """
    Cliente HTTP asíncrono contra la app con ASGITransport y gestión de
    startup/shutdown mediante asgi-lifespan.
    """
    from app.shared.database.database import get_async_session

    async def _session_override():
        async with session_factory() as session:
            yield session

    app.state.billing = billing_container
    app.dependency_overrides[get_async_session] = _session_override
    try:
        async with LifespanManager(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://testserver") as client:
                yield client
    finally:
        app.dependency_overrides.clear()
        app.state.billing = None


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    from app.modules.auth.security import create_access_token

    def _headers(user_id: str = "u1") -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers

# Fin del archivo backend/tests/conftest.py
