# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/providers/solana_rpc.py

Cliente JSON-RPC mínimo de Solana para verificar transferencias SPL.

Solo implementa `getTransaction` en encoding jsonParsed, que trae los
balances de token pre/post y las account keys con su flag de firmante.
Los endpoints se prueban en orden con la política de reintentos inyectada.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.shared.core.http_retry_utils import (
    RetryableError,
    RetryPolicy,
    SleepFn,
    call_with_endpoint_fallback,
)

logger = logging.getLogger(__name__)

SOLANA_TIMEOUT = httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0)

_request_ids = itertools.count(1)


class SolanaRpcError(RetryableError):
    """El nodo respondió un error JSON-RPC (se prueba el siguiente endpoint)."""

    def __init__(self, code: Any, message: str):
        self.code = code
        super().__init__(f"JSON-RPC error {code}: {message}")


class SolanaRpcClient:
    """Cliente JSON-RPC con lista de endpoints en fallback."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoints: Sequence[str],
        *,
        commitment: str = "finalized",
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.http = http
        self.endpoints: List[str] = list(endpoints)
        self.commitment = commitment
        self.policy = policy or RetryPolicy.exponential(max_attempts=2, base_seconds=1.0)
        self._sleep = sleep

    async def _rpc(self, endpoint: str, method: str, params: list) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params,
        }
        response = await self.http.post(endpoint, json=body)
        response.raise_for_status()
        try:
            data = json.loads(response.content, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise SolanaRpcError("invalid_json", str(e)) from e

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            raise SolanaRpcError(error.get("code"), str(error.get("message", "")))
        return data.get("result")

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """
        getTransaction(signature) con commitment configurado.

        Returns:
            La transacción parseada o None si el nodo no la conoce.

        Raises:
            EndpointsExhausted: ningún endpoint respondió
        """
        params = [
            signature,
            {
                "encoding": "jsonParsed",
                "commitment": self.commitment,
                "maxSupportedTransactionVersion": 0,
            },
        ]

        async def _call(endpoint: str) -> Any:
            return await self._rpc(endpoint, "getTransaction", params)

        result = await call_with_endpoint_fallback(
            self.endpoints,
            _call,
            policy=self.policy,
            label="solana.getTransaction",
            sleep=self._sleep,
        )
        if result is None:
            logger.info("solana_tx_not_found signature=%s", signature[:16])
            return None
        if not isinstance(result, dict):
            raise SolanaRpcError("invalid_result", f"tipo inesperado {type(result).__name__}")
        return result


__all__ = ["SolanaRpcClient", "SolanaRpcError", "SOLANA_TIMEOUT"]
