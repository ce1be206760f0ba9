# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/providers/flutterwave_provider.py

Cliente HTTP de Flutterwave (API v3) para el rail de tarjeta.

Endpoints usados:
- POST /payments                      -> link de checkout hospedado
- GET  /transactions/{id}/verify      -> estado de una transacción
- GET  /transactions?tx_ref=...       -> id de transacción por referencia

Los montos se parsean como Decimal (nunca float). Las GET son idempotentes
y se reintentan con backoff; el POST de creación no se reintenta.

Este cliente no conoce el dominio: propaga errores httpx y el verificador
los normaliza.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from app.shared.core.http_retry_utils import SleepFn, retry_with_backoff

logger = logging.getLogger(__name__)


# Timeouts por defecto (connect 5s, read 15s)
FLUTTERWAVE_TIMEOUT = httpx.Timeout(connect=5.0, read=15.0, write=15.0, pool=5.0)

# Respuestas de verify que significan "no existe" (no transitorio)
NOT_FOUND_STATUSES = frozenset({400, 404})


class FlutterwaveNotConfigured(RuntimeError):
    """FLUTTERWAVE_SECRET_KEY ausente."""


@dataclass
class CheckoutSession:
    """Resultado de crear un checkout hospedado."""
    checkout_url: str
    tx_ref: str
    provider: str = "flutterwave"


def _parse_json(response: httpx.Response) -> Dict[str, Any]:
    """JSON con montos como Decimal."""
    data = json.loads(response.content or b"{}", parse_float=Decimal)
    if not isinstance(data, dict):
        raise ValueError("Respuesta de Flutterwave no es un objeto JSON")
    return data


class FlutterwaveClient:
    """
    Cliente de Flutterwave con httpx.AsyncClient inyectado.

    El AsyncClient lo crea y cierra el contenedor de billing (o el test).
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        secret_key: Optional[str],
        base_url: str = "https://api.flutterwave.com/v3",
        max_retries: int = 2,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.http = http
        self._secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self._secret_key)

    def _headers(self) -> Dict[str, str]:
        if not self._secret_key:
            raise FlutterwaveNotConfigured("Flutterwave is not configured. Set FLUTTERWAVE_SECRET_KEY.")
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    async def create_payment(self, payload: Dict[str, Any]) -> CheckoutSession:
        """
        Crea un pago hospedado y devuelve el link.

        Raises:
            httpx.HTTPError: error de transporte o respuesta no 2xx
            ValueError: respuesta sin `data.link`
        """
        response = await self.http.post(
            f"{self.base_url}/payments",
            json=payload,
            headers=self._headers(),
        )
        response.raise_for_status()
        body = _parse_json(response)

        link = (body.get("data") or {}).get("link")
        if not link:
            raise ValueError(f"Flutterwave no devolvió link (status={body.get('status')!r})")

        logger.info("flutterwave_checkout_created tx_ref=%s", payload.get("tx_ref"))
        return CheckoutSession(checkout_url=str(link), tx_ref=str(payload.get("tx_ref")))

    async def verify_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene `data` de /transactions/{id}/verify.

        Returns:
            dict con status/amount/currency/tx_ref, o None si Flutterwave
            responde que la transacción no existe.
        """
        response = await retry_with_backoff(
            self.http.get,
            f"{self.base_url}/transactions/{transaction_id}/verify",
            headers=self._headers(),
            max_retries=self.max_retries,
            sleep=self._sleep,
        )
        if response.status_code in NOT_FOUND_STATUSES:
            logger.info("flutterwave_verify_not_found id=%s status=%s", transaction_id, response.status_code)
            return None
        response.raise_for_status()

        data = _parse_json(response).get("data")
        return data if isinstance(data, dict) else None

    async def find_transaction_id(self, tx_ref: str) -> Optional[str]:
        """
        Busca el id de transacción asociado a un tx_ref.

        Un tx_ref puede tener varios intentos de cobro (p.ej. uno fallido y
        su reintento exitoso): se prefiere el `successful`, si no el primero.
        """
        response = await retry_with_backoff(
            self.http.get,
            f"{self.base_url}/transactions",
            params={"tx_ref": tx_ref},
            headers=self._headers(),
            max_retries=self.max_retries,
            sleep=self._sleep,
        )
        response.raise_for_status()

        data = _parse_json(response).get("data")
        if not isinstance(data, list):
            return None
        candidates = [entry for entry in data if isinstance(entry, dict) and entry.get("id") is not None]
        if not candidates:
            return None
        chosen = next(
            (entry for entry in candidates if str(entry.get("status") or "").lower() == "successful"),
            candidates[0],
        )
        if len(candidates) > 1:
            logger.info(
                "flutterwave_tx_ref_multiple tx_ref=%s count=%d chosen=%s",
                tx_ref, len(candidates), chosen.get("id"),
            )
        return str(chosen["id"])


__all__ = [
    "FlutterwaveClient",
    "FlutterwaveNotConfigured",
    "CheckoutSession",
    "FLUTTERWAVE_TIMEOUT",
]
