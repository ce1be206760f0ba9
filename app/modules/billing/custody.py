# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/custody.py

Custodia de wallets Movement administradas por el servidor.

- Formato de la llave cifrada: `ivHex:authTagHex:cipherHex`
  (AES-256-GCM, IV de 16 bytes, clave = scrypt(secret, "salt", 32)).
- Capacidad de custodia como variante explícita: CustodyAvailable |
  CustodyUnavailable. Nunca se asume custodia.
- Envío vía REST: sequence_number -> estimate_gas_price ->
  encode_submission -> firma Ed25519 -> POST /transactions.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.accounts.models import AppUser, CustodialWallet
from app.modules.accounts.repository import CustodialWalletRepository
from app.modules.billing.errors import BillingValidationError
from app.modules.billing.providers.movement_rpc import MovementRpcClient
from app.modules.billing.verifiers.base import normalize_move_address

logger = logging.getLogger(__name__)

MOVEMENT_CHAIN = "MOVEMENT"

FA_TRANSFER_FUNCTION = "0x1::primary_fungible_store::transfer"
FA_METADATA_TYPE = "0x1::fungible_asset::Metadata"
COIN_TRANSFER_FUNCTION = "0x1::coin::transfer"

_PRIVATE_KEY_PREFIX = "ed25519-priv-"


class CustodyKeyError(Exception):
    """La llave custodiada no se pudo descifrar o no es una llave Ed25519 válida."""


# =============================================================================
# Cifrado de llaves
# =============================================================================

def _derive_key(secret: str) -> bytes:
    kdf = Scrypt(salt=b"salt", length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def encrypt_private_key(private_key: str, secret: str) -> str:
    """Cifra una llave privada (texto) al formato `iv:tag:cipher` en hex."""
    iv = os.urandom(16)
    sealed = AESGCM(_derive_key(secret)).encrypt(iv, private_key.encode("utf-8"), None)
    cipher, tag = sealed[:-16], sealed[-16:]
    return f"{iv.hex()}:{tag.hex()}:{cipher.hex()}"


def decrypt_private_key(encrypted: str, secret: str) -> str:
    """
    Descifra `ivHex:authTagHex:cipherHex`.

    Raises:
        CustodyKeyError: formato inválido o tag de autenticación incorrecto
    """
    try:
        iv_hex, tag_hex, cipher_hex = encrypted.split(":")
        iv, tag, cipher = bytes.fromhex(iv_hex), bytes.fromhex(tag_hex), bytes.fromhex(cipher_hex)
        plain = AESGCM(_derive_key(secret)).decrypt(iv, cipher + tag, None)
    except (ValueError, InvalidTag) as e:
        raise CustodyKeyError("No se pudo descifrar la llave custodiada") from e
    return plain.decode("utf-8")


def load_signing_key(private_key: str) -> Ed25519PrivateKey:
    """Acepta `ed25519-priv-0x...`, `0x...` o hex plano (seed de 32 bytes)."""
    text = private_key.strip()
    if text.startswith(_PRIVATE_KEY_PREFIX):
        text = text[len(_PRIVATE_KEY_PREFIX):]
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        seed = bytes.fromhex(text)
    except ValueError as e:
        raise CustodyKeyError("Llave privada no es hex") from e
    if len(seed) != 32:
        raise CustodyKeyError(f"Llave privada de {len(seed)} bytes (se esperan 32)")
    return Ed25519PrivateKey.from_private_bytes(seed)


def public_key_hex(key: Ed25519PrivateKey) -> str:
    raw = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return "0x" + raw.hex()


# =============================================================================
# Plantilla de transferencia
# =============================================================================

def build_transfer_template(asset: Optional[str], receiver: str, amount_raw: str) -> Dict[str, Any]:
    """
    Payload `entry_function_payload` para pagar un intent MOVE_CHAIN.

    Un tipo de coin (`0x..::mod::Struct`) usa coin::transfer; una dirección
    de metadata de fungible asset usa primary_fungible_store::transfer.
    """
    asset = (asset or "").strip()
    if not asset:
        raise BillingValidationError("Activo de Movement no configurado", field="asset_identifier")

    if "::" in asset:
        return {
            "type": "entry_function_payload",
            "function": COIN_TRANSFER_FUNCTION,
            "type_arguments": [asset],
            "arguments": [receiver, str(amount_raw)],
        }
    return {
        "type": "entry_function_payload",
        "function": FA_TRANSFER_FUNCTION,
        "type_arguments": [FA_METADATA_TYPE],
        "arguments": [asset, receiver, str(amount_raw)],
    }


# =============================================================================
# Capacidad de custodia
# =============================================================================

@dataclass(frozen=True)
class CustodyAvailable:
    wallet: CustodialWallet
    available: bool = True


@dataclass(frozen=True)
class CustodyUnavailable:
    reason: str
    available: bool = False


CustodyCapability = Union[CustodyAvailable, CustodyUnavailable]


class CustodyService:
    """Chequeo de capacidad + firma y envío de transferencias custodiadas."""

    def __init__(
        self,
        rpc: MovementRpcClient,
        *,
        encryption_key: Optional[str],
        enabled: bool = True,
        max_gas_amount: int = 10_000,
        gas_unit_price: int = 100,
        expiration_seconds: int = 600,
        wallet_repo: Optional[CustodialWalletRepository] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.rpc = rpc
        self._encryption_key = encryption_key
        self.enabled = enabled
        self.max_gas_amount = max_gas_amount
        self.gas_unit_price = gas_unit_price
        self.expiration_seconds = expiration_seconds
        self.wallet_repo = wallet_repo or CustodialWalletRepository()
        self._clock = clock

    async def check(self, session: AsyncSession, user: AppUser) -> CustodyCapability:
        """Hay custodia solo si existe llave para la wallet registrada del usuario."""
        if not self.enabled:
            return CustodyUnavailable("disabled")
        if not self._encryption_key:
            return CustodyUnavailable("encryption_key_missing")
        if not user.movement_address:
            return CustodyUnavailable("no_registered_wallet")

        wallet = await self.wallet_repo.get_for_user(session, user.user_id, MOVEMENT_CHAIN)
        if wallet is None or not wallet.encrypted_private_key:
            return CustodyUnavailable("self_custodied")
        if normalize_move_address(wallet.address) != normalize_move_address(user.movement_address):
            return CustodyUnavailable("wallet_mismatch")
        return CustodyAvailable(wallet)

    async def submit_transfer(self, wallet: CustodialWallet, payload: Dict[str, Any]) -> str:
        """
        Firma y envía `payload` desde la wallet custodiada.

        Returns:
            Hash de la transacción enviada.

        Raises:
            CustodyKeyError: la llave no se pudo usar
            httpx.HTTPError / EndpointsExhausted / KeyError / ValueError: fallo del nodo
        """
        key = load_signing_key(decrypt_private_key(wallet.encrypted_private_key, self._encryption_key or ""))

        sequence_number = await self.rpc.get_sequence_number(wallet.address)
        gas_estimate = await self.rpc.estimate_gas_price()

        body: Dict[str, Any] = {
            "sender": wallet.address,
            "sequence_number": sequence_number,
            "max_gas_amount": str(self.max_gas_amount),
            "gas_unit_price": str(gas_estimate or self.gas_unit_price),
            "expiration_timestamp_secs": str(int(self._clock()) + self.expiration_seconds),
            "payload": payload,
        }

        signing_message = await self.rpc.encode_submission(body)
        message = bytes.fromhex(signing_message[2:] if signing_message.startswith("0x") else signing_message)
        signature = key.sign(message)

        body["signature"] = {
            "type": "ed25519_signature",
            "public_key": public_key_hex(key),
            "signature": "0x" + signature.hex(),
        }
        tx_hash = await self.rpc.submit_transaction(body)

        logger.info(
            "custodial_transfer_submitted sender=%s hash=%s seq=%s",
            wallet.address[:10], tx_hash[:14], sequence_number,
        )
        return tx_hash


__all__ = [
    "CustodyService",
    "CustodyAvailable",
    "CustodyUnavailable",
    "CustodyCapability",
    "CustodyKeyError",
    "build_transfer_template",
    "encrypt_private_key",
    "decrypt_private_key",
    "load_signing_key",
    "public_key_hex",
]
