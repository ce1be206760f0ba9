# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/providers/movement_rpc.py

Cliente REST de Movement (API compatible con Aptos /v1).

Lecturas:
- GET /transactions/by_hash/{hash}  (con fallback de endpoints + backoff)
- GET /accounts/{address}           (sequence_number)
- GET /estimate_gas_price

Escrituras (custodia):
- POST /transactions/encode_submission  -> mensaje BCS a firmar (hex)
- POST /transactions                    -> hash (solo endpoint primario)

Una transacción recién enviada puede no ser visible aún en todos los
nodos: 404 y `pending_transaction` se tratan como "reintentar".

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.shared.core.http_retry_utils import (
    RetryableError,
    RetryPolicy,
    SleepFn,
    call_with_endpoint_fallback,
)

logger = logging.getLogger(__name__)

MOVEMENT_TIMEOUT = httpx.Timeout(connect=5.0, read=15.0, write=15.0, pool=5.0)


class TransactionNotVisible(RetryableError):
    """El nodo aún no conoce la transacción o sigue pendiente."""

    def __init__(self, tx_hash: str, endpoint: str, state: str):
        self.tx_hash = tx_hash
        self.endpoint = endpoint
        self.state = state
        super().__init__(f"tx {tx_hash[:12]}... {state} en {endpoint}")


class MovementRpcClient:
    """Cliente REST con lista de endpoints en fallback."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoints: Sequence[str],
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.http = http
        self.endpoints: List[str] = list(endpoints)
        self.policy = policy or RetryPolicy.linear(max_attempts=5, step_seconds=2.0)
        self._sleep = sleep

    async def _get_json(self, url: str) -> Dict[str, Any]:
        response = await self.http.get(url)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise RetryableError(f"respuesta no-objeto de {url}")
        return data

    async def fetch_transaction(self, tx_hash: str) -> Dict[str, Any]:
        """
        Obtiene una transacción confirmada por hash.

        Prueba cada endpoint en orden; si todos fallan reintenta la lista
        completa según la política (por defecto 5 pasadas, 2s × pasada).

        Raises:
            EndpointsExhausted: la transacción no fue visible en ninguna pasada
        """

        async def _call(endpoint: str) -> Dict[str, Any]:
            response = await self.http.get(f"{endpoint}/transactions/by_hash/{tx_hash}")
            if response.status_code == 404:
                raise TransactionNotVisible(tx_hash, endpoint, "not_found")
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise RetryableError(f"respuesta no-objeto de {endpoint}")
            if data.get("type") == "pending_transaction":
                raise TransactionNotVisible(tx_hash, endpoint, "pending")
            return data

        return await call_with_endpoint_fallback(
            self.endpoints,
            _call,
            policy=self.policy,
            label="movement.transactions.by_hash",
            sleep=self._sleep,
        )

    async def _single_pass(self, label: str, call) -> Any:
        return await call_with_endpoint_fallback(
            self.endpoints,
            call,
            policy=RetryPolicy.immediate(),
            label=label,
            sleep=self._sleep,
        )

    async def get_sequence_number(self, address: str) -> str:
        async def _call(endpoint: str) -> str:
            data = await self._get_json(f"{endpoint}/accounts/{address}")
            return str(data["sequence_number"])

        return await self._single_pass("movement.accounts", _call)

    async def estimate_gas_price(self) -> int:
        async def _call(endpoint: str) -> int:
            data = await self._get_json(f"{endpoint}/estimate_gas_price")
            return int(data["gas_estimate"])

        return await self._single_pass("movement.estimate_gas_price", _call)

    async def encode_submission(self, body: Dict[str, Any]) -> str:
        """Devuelve el signing message (hex con 0x) de una transacción sin firmar."""

        async def _call(endpoint: str) -> str:
            response = await self.http.post(f"{endpoint}/transactions/encode_submission", json=body)
            response.raise_for_status()
            return str(response.json())

        return await self._single_pass("movement.encode_submission", _call)

    async def submit_transaction(self, body: Dict[str, Any]) -> str:
        """
        Envía una transacción firmada al endpoint primario; devuelve su hash.

        Sin fallback: tras un fallo ambiguo (timeout, 5xx) la misma
        transacción firmada podría haber entrado al mempool, así que no se
        reenvía a otro nodo. El error sube y el llamador pasa a firma del
        cliente.
        """
        if not self.endpoints:
            raise ValueError("Movement sin endpoints configurados")
        endpoint = self.endpoints[0]
        response = await self.http.post(f"{endpoint}/transactions", json=body)
        if response.is_error:
            logger.warning("movement_submit_failed endpoint=%s status=%s", endpoint, response.status_code)
        response.raise_for_status()
        return str(response.json()["hash"])


__all__ = ["MovementRpcClient", "TransactionNotVisible", "MOVEMENT_TIMEOUT"]
