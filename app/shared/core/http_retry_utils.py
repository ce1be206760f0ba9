# -*- coding: utf-8 -*-
"""
backend/app/shared/core/http_retry_utils.py

Capa de resiliencia para llamadas HTTP/RPC externas.

Incluye:
- RetryPolicy: política explícita (máx. intentos + función de delay),
  independiente del código que la consume.
- build_endpoint_list: lista ordenada y sin duplicados de endpoints.
- call_with_endpoint_fallback: recorre todos los endpoints en orden y, si
  todos fallan, reintenta la lista completa según la política.
- retry_with_backoff: reintentos con backoff exponencial + jitter para un
  único endpoint (GETs idempotentes del procesador de tarjeta).
- wait_shielded: límite de espera que NO cancela la operación subyacente.

Uso:
    policy = RetryPolicy.linear(max_attempts=5, step_seconds=2.0)
    endpoints = build_endpoint_list(primary, fallback)
    tx = await call_with_endpoint_fallback(
        endpoints,
        lambda base: fetch_tx(base, tx_hash),
        policy=policy,
        label="movement.tx_by_hash",
    )

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


# =============================================================================
# Errores
# =============================================================================

class RetryableError(Exception):
    """
    Señal explícita de "reintentar": el endpoint respondió pero el recurso
    aún no es visible (consistencia eventual, tx pendiente, 404 temporal).
    """


class EndpointsExhausted(Exception):
    """Todos los endpoints fallaron en todas las pasadas de la política."""

    def __init__(self, label: str, attempts: int, last_error: Optional[BaseException] = None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{label}: endpoints agotados tras {attempts} pasadas "
            f"(último error: {last_error!r})"
        )


# =============================================================================
# Política de reintentos
# =============================================================================

@dataclass(frozen=True)
class RetryPolicy:
    """
    Política de reintentos.

    Attributes:
        max_attempts: número de pasadas (>= 1)
        delay: función intento (1-based) -> segundos de espera antes del siguiente
    """
    max_attempts: int
    delay: Callable[[int], float]

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts debe ser >= 1, recibido: {self.max_attempts}")

    @classmethod
    def linear(cls, max_attempts: int = 5, step_seconds: float = 2.0) -> "RetryPolicy":
        """Backoff lineal: step × intento (2s, 4s, 6s, ...)."""
        return cls(max_attempts=max_attempts, delay=lambda attempt: step_seconds * attempt)

    @classmethod
    def exponential(
        cls,
        max_attempts: int = 3,
        base_seconds: float = 1.0,
        factor: float = 2.0,
        max_delay: float = 30.0,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            delay=lambda attempt: min(base_seconds * factor ** (attempt - 1), max_delay),
        )

    @classmethod
    def immediate(cls, max_attempts: int = 1) -> "RetryPolicy":
        """Sin espera entre pasadas (tests y llamadas de un solo intento)."""
        return cls(max_attempts=max_attempts, delay=lambda attempt: 0.0)

    def delay_for(self, attempt: int) -> float:
        return max(0.0, float(self.delay(attempt)))


# =============================================================================
# Endpoints con fallback
# =============================================================================

def build_endpoint_list(*candidates: Optional[str] | Iterable[Optional[str]]) -> List[str]:
    """
    Construye la lista de endpoints: recorta espacios y '/' final, descarta
    vacíos y duplicados, preservando el orden (primario primero).
    """
    flat: List[Optional[str]] = []
    for candidate in candidates:
        if candidate is None or isinstance(candidate, str):
            flat.append(candidate)
        else:
            flat.extend(candidate)

    endpoints: List[str] = []
    for raw in flat:
        url = (raw or "").strip().rstrip("/")
        if url and url not in endpoints:
            endpoints.append(url)
    return endpoints


async def call_with_endpoint_fallback(
    endpoints: Sequence[str],
    call: Callable[[str], Awaitable[T]],
    *,
    policy: RetryPolicy,
    label: str = "rpc",
    retry_on: Tuple[Type[BaseException], ...] = (httpx.HTTPError, RetryableError),
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Ejecuta `call(endpoint)` probando cada endpoint en orden. Si todos fallan,
    espera `policy.delay_for(pasada)` y repite la lista completa, hasta
    `policy.max_attempts` pasadas.

    Las excepciones fuera de `retry_on` se propagan de inmediato (p.ej. una
    respuesta válida que el llamador decide rechazar).

    Raises:
        EndpointsExhausted: si ninguna pasada tuvo éxito
    """
    if not endpoints:
        raise EndpointsExhausted(label, attempts=0, last_error=None)

    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        for endpoint in endpoints:
            try:
                result = await call(endpoint)
                if attempt > 1:
                    logger.info(
                        "endpoint_call_recovered label=%s endpoint=%s attempt=%d",
                        label, endpoint, attempt,
                    )
                return result
            except retry_on as e:
                last_error = e
                logger.warning(
                    "endpoint_call_failed label=%s endpoint=%s attempt=%d/%d error=%s",
                    label, endpoint, attempt, policy.max_attempts, repr(e),
                )

        if attempt < policy.max_attempts:
            delay = policy.delay_for(attempt)
            logger.info(
                "endpoint_list_retry label=%s attempt=%d/%d delay=%.1fs",
                label, attempt, policy.max_attempts, delay,
            )
            await sleep(delay)

    logger.error(
        "endpoint_list_exhausted label=%s endpoints=%d attempts=%d last_error=%s",
        label, len(endpoints), policy.max_attempts, repr(last_error),
    )
    raise EndpointsExhausted(label, attempts=policy.max_attempts, last_error=last_error)


# Referencias fuertes a tareas que siguen vivas tras vencer su plazo
_ORPHANED_TASKS: "set[asyncio.Future[Any]]" = set()


def _consume_orphan_result(task: "asyncio.Future[Any]") -> None:
    """Recupera el resultado de una tarea que sobrevivió a su plazo."""
    _ORPHANED_TASKS.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("shielded_task_failed error=%s", repr(error))


async def wait_shielded(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Espera como máximo `timeout` segundos sin cancelar la operación interna.

    Si vence el plazo se lanza TimeoutError, pero la tarea sigue corriendo
    hasta terminar (las llamadas a la cadena no se abandonan a medias); su
    error, si lo hay, se consume y se loguea al terminar.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        if not task.done():
            _ORPHANED_TASKS.add(task)
        task.add_done_callback(_consume_orphan_result)
        raise


# =============================================================================
# Reintentos sobre un único endpoint
# =============================================================================

async def retry_with_backoff(
    func: Callable,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retry_on_status: Optional[set[int]] = None,
    auto_raise: bool = False,
    sleep: SleepFn = asyncio.sleep,
    **kwargs
) -> Any:
    """
    Ejecuta una función HTTP con reintentos y backoff exponencial.

    Args:
        func: Función async a ejecutar (ej: client.get, client.post)
        *args: Argumentos posicionales para func
        max_retries: Número máximo de reintentos
        base_delay: Delay inicial en segundos
        max_delay: Delay máximo en segundos
        backoff_factor: Factor de multiplicación del delay
        retry_on_status: Set de códigos HTTP que deben reintentarse (default: 429/5xx)
        auto_raise: Si True, llama raise_for_status() en respuestas exitosas
        sleep: función de espera (inyectable en tests)
        **kwargs: Argumentos nombrados para func

    Returns:
        Response de httpx si tiene éxito

    Raises:
        httpx.HTTPError: Si todos los reintentos fallan
    """
    if max_retries < 0:
        raise ValueError(f"max_retries debe ser >= 0, recibido: {max_retries}")
    if base_delay < 0:
        raise ValueError(f"base_delay debe ser >= 0, recibido: {base_delay}")

    if retry_on_status is None:
        retry_on_status = {429, 500, 502, 503, 504}

    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            response = await func(*args, **kwargs)

            if response.status_code in retry_on_status:
                if attempt < max_retries:
                    logger.warning(
                        "HTTP %s en intento %d/%d, reintentando en %.1fs",
                        response.status_code, attempt + 1, max_retries + 1, delay,
                    )
                    # jitter para evitar thundering herd
                    await sleep(delay + random.uniform(0, 0.2 * delay))
                    delay = min(delay * backoff_factor, max_delay)
                    continue
                logger.error("HTTP %s tras %d intentos", response.status_code, max_retries + 1)
                response.raise_for_status()

            if attempt > 0:
                logger.info("Éxito tras %d intentos", attempt + 1)

            if auto_raise:
                response.raise_for_status()

            return response

        except (httpx.TransportError, httpx.TimeoutException) as e:
            if attempt < max_retries:
                logger.warning(
                    "Error de transporte (%s) en intento %d/%d, reintentando en %.1fs",
                    type(e).__name__, attempt + 1, max_retries + 1, delay,
                )
                await sleep(delay + random.uniform(0, 0.2 * delay))
                delay = min(delay * backoff_factor, max_delay)
            else:
                logger.error("Error de transporte tras %d intentos: %s", max_retries + 1, e)
                raise

    raise RuntimeError("Reintentos agotados sin excepción clara")


__all__ = [
    "RetryPolicy",
    "RetryableError",
    "EndpointsExhausted",
    "build_endpoint_list",
    "call_with_endpoint_fallback",
    "wait_shielded",
    "retry_with_backoff",
]

# Fin del archivo backend/app/shared/core/http_retry_utils.py
