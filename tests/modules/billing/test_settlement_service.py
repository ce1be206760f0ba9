# -*- coding: utf-8 -*-
"""
backend/tests/modules/billing/test_settlement_service.py

Tests del motor de liquidación:
- Acreditación exactamente una vez (saldo + ledger + COMPLETED)
- Idempotencia y carrera entre dos sesiones
- Guardia de replay (referencia ligada a otro intent o al ledger)
- Rechazo sin crédito ni ledger, sin ligar la referencia
- Notificación best-effort fuera de la transacción

Autor: Banter Backend
Fecha: 2026-02-18
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from app.modules.accounts.models import AppUser
from app.modules.billing.enums import PaymentRail, PaymentStatus, RejectionReason
from app.modules.billing.errors import PaymentNotFound, ReplayConflict
from app.modules.billing.ledger import LedgerRepository, WalletTransaction
from app.modules.billing.models import PaymentIntent
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.billing.services import SettlementService
from app.modules.notifications.models import Notification
from app.modules.notifications.service import NotificationService, vote_purchase_reference
from app.shared.database.database import build_engine, build_sessionmaker, create_all

from tests.factories import MOVEMENT_TX_HASH, SOLANA_SIGNATURE


async def _balance(session_factory, user_id="u1") -> int:
    async with session_factory() as s:
        return await s.scalar(select(AppUser.vote_balance).where(AppUser.user_id == user_id))


async def _ledger_rows(session_factory):
    async with session_factory() as s:
        return list((await s.execute(select(WalletTransaction))).scalars().all())


async def _intent_row(session_factory, intent_id) -> PaymentIntent:
    async with session_factory() as s:
        return await s.get(PaymentIntent, intent_id)


@pytest.fixture
async def user(db_session, make_user):
    return await make_user(db_session, "u1")


@pytest.fixture
async def file_session_factory(tmp_path):
    """SQLite en archivo: cada sesión usa su propia conexión del pool."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    await create_all(engine)
    yield build_sessionmaker(engine)
    await engine.dispose()


class TestSettle:

    @pytest.mark.anyio
    async def test_settle_credits_balance_ledger_and_completes(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s, bundle_id="b2")

        service = SettlementService()
        async with session_factory() as s:
            outcome = await service.settle(s, intent.id, SOLANA_SIGNATURE, {"slot": 1})

        assert outcome.result == "completed"
        assert outcome.new_balance == 100
        assert outcome.intent.status == PaymentStatus.COMPLETED.value
        assert outcome.intent.external_reference == SOLANA_SIGNATURE
        assert outcome.intent.completed_at is not None

        assert await _balance(session_factory) == 100
        rows = await _ledger_rows(session_factory)
        assert len(rows) == 1
        entry = rows[0]
        assert entry.external_reference == SOLANA_SIGNATURE
        assert entry.chain == "SOLANA"
        assert entry.amount_raw == "100000000"
        assert entry.token_symbol == "USDC"
        assert entry.payment_intent_id == intent.id
        assert entry.tx_metadata == {"bundle_id": "b2", "votes": 100}

        stored = await _intent_row(session_factory, intent.id)
        assert stored.intent_metadata["verification"] == {"slot": 1}

    @pytest.mark.anyio
    async def test_second_settle_is_idempotent(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)

        service = SettlementService()
        async with session_factory() as s:
            first = await service.settle(s, intent.id, SOLANA_SIGNATURE)
        async with session_factory() as s:
            second = await service.settle(s, intent.id, SOLANA_SIGNATURE)

        assert first.result == "completed"
        assert second.result == "already_terminal"
        assert second.intent.status == PaymentStatus.COMPLETED.value
        assert await _balance(session_factory) == 10
        assert len(await _ledger_rows(session_factory)) == 1

    @pytest.mark.anyio
    async def test_stale_session_loses_race_without_double_credit(self, session_factory, user, make_intent):
        """Dos sesiones ven el intent PENDING; solo una acredita."""
        async with session_factory() as s:
            intent = await make_intent(s, rail=PaymentRail.MOVE_CHAIN)

        service = SettlementService()
        async with session_factory() as stale, session_factory() as fresh:
            loaded = await PaymentIntentRepository().get_by_id(stale, intent.id)
            assert loaded.status == PaymentStatus.PENDING.value
            await stale.commit()

            winner = await service.settle(fresh, intent.id, MOVEMENT_TX_HASH)
            loser = await service.settle(stale, intent.id, MOVEMENT_TX_HASH)

        assert winner.result == "completed"
        assert loser.result == "already_terminal"
        assert await _balance(session_factory) == 10
        rows = await _ledger_rows(session_factory)
        assert [r.chain for r in rows] == ["MOVEMENT"]
        assert rows[0].token_symbol == "USDC.e"

    @pytest.mark.anyio
    async def test_concurrent_settles_credit_once(self, file_session_factory, make_user, make_intent):
        """N liquidaciones simultáneas en sesiones/conexiones distintas."""
        async with file_session_factory() as s:
            await make_user(s, "u1")
            intent = await make_intent(s)

        service = SettlementService()

        async def _settle():
            async with file_session_factory() as s:
                return await service.settle(s, intent.id, SOLANA_SIGNATURE)

        outcomes = await asyncio.gather(*(_settle() for _ in range(5)))

        results = sorted(o.result for o in outcomes)
        assert results == ["already_terminal"] * 4 + ["completed"]
        assert all(o.intent.status == PaymentStatus.COMPLETED.value for o in outcomes)
        assert await _balance(file_session_factory) == 10
        assert len(await _ledger_rows(file_session_factory)) == 1

    @pytest.mark.anyio
    async def test_compare_and_set_refuses_second_transition(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)

        repo = PaymentIntentRepository()
        async with session_factory() as s:
            assert await repo.guarded_complete(s, intent.id, "ref-a") is True
            assert await repo.guarded_complete(s, intent.id, "ref-b") is False
            assert await repo.guarded_fail(s, intent.id, RejectionReason.AMOUNT_TOO_LOW) is False
            await s.commit()

        stored = await _intent_row(session_factory, intent.id)
        assert stored.external_reference == "ref-a"

    @pytest.mark.anyio
    async def test_reference_bound_to_other_intent_is_replay(self, session_factory, user, make_intent):
        async with session_factory() as s:
            first = await make_intent(s)
            second = await make_intent(s)

        service = SettlementService()
        async with session_factory() as s:
            await service.settle(s, first.id, SOLANA_SIGNATURE)

        async with session_factory() as s:
            with pytest.raises(ReplayConflict) as exc:
                await service.settle(s, second.id, SOLANA_SIGNATURE)

        assert exc.value.bound_intent_id == first.id
        assert (await _intent_row(session_factory, second.id)).status == PaymentStatus.PENDING.value
        assert await _balance(session_factory) == 10
        assert len(await _ledger_rows(session_factory)) == 1

    @pytest.mark.anyio
    async def test_reference_already_in_ledger_rolls_back_everything(self, session_factory, user, make_intent):
        """Si el ledger rechaza la referencia, ni saldo ni estado cambian."""
        async with session_factory() as s:
            intent = await make_intent(s)
            await LedgerRepository().append(
                s,
                user_id="legacy",
                external_reference=SOLANA_SIGNATURE,
                chain="SOLANA",
                amount_raw="1",
                payment_intent_id="legacy-intent",
            )
            await s.commit()

        async with session_factory() as s:
            with pytest.raises(ReplayConflict):
                await SettlementService().settle(s, intent.id, SOLANA_SIGNATURE)

        stored = await _intent_row(session_factory, intent.id)
        assert stored.status == PaymentStatus.PENDING.value
        assert stored.external_reference is None
        assert await _balance(session_factory) == 0

    @pytest.mark.anyio
    async def test_unknown_intent(self, session_factory):
        async with session_factory() as s:
            with pytest.raises(PaymentNotFound):
                await SettlementService().settle(s, "missing", SOLANA_SIGNATURE)

    @pytest.mark.anyio
    async def test_missing_user_rolls_back(self, session_factory, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s, user_id="ghost")

        async with session_factory() as s:
            with pytest.raises(ValueError):
                await SettlementService().settle(s, intent.id, SOLANA_SIGNATURE)

        assert (await _intent_row(session_factory, intent.id)).status == PaymentStatus.PENDING.value
        assert await _ledger_rows(session_factory) == []

    @pytest.mark.anyio
    async def test_empty_reference_is_rejected(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)
        async with session_factory() as s:
            with pytest.raises(ValueError):
                await SettlementService().settle(s, intent.id, "")


class TestReject:

    @pytest.mark.anyio
    async def test_reject_marks_failed_without_credit(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)

        async with session_factory() as s:
            outcome = await SettlementService().reject(s, intent.id, RejectionReason.AMOUNT_TOO_LOW, "paid=1")

        assert outcome.result == "failed"
        stored = await _intent_row(session_factory, intent.id)
        assert stored.status == PaymentStatus.FAILED.value
        assert stored.failure_reason == "AMOUNT_TOO_LOW"
        assert stored.external_reference is None
        assert await _balance(session_factory) == 0
        assert await _ledger_rows(session_factory) == []

    @pytest.mark.anyio
    async def test_failed_intent_cannot_be_settled(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)
        service = SettlementService()
        async with session_factory() as s:
            await service.reject(s, intent.id, RejectionReason.SIGNER_MISSING)
        async with session_factory() as s:
            outcome = await service.settle(s, intent.id, SOLANA_SIGNATURE)

        assert outcome.result == "already_terminal"
        assert outcome.intent.status == PaymentStatus.FAILED.value
        assert await _balance(session_factory) == 0

    @pytest.mark.anyio
    async def test_rejected_reference_stays_available(self, session_factory, user, make_intent):
        """Un rechazo no liga la referencia: el intent correcto aún puede usarla."""
        async with session_factory() as s:
            wrong = await make_intent(s, bundle_id="b2")
            right = await make_intent(s)

        service = SettlementService()
        async with session_factory() as s:
            await service.reject(s, wrong.id, RejectionReason.AMOUNT_TOO_LOW)
        async with session_factory() as s:
            outcome = await service.settle(s, right.id, SOLANA_SIGNATURE)

        assert outcome.result == "completed"


class TestSettlementNotification:

    @pytest.mark.anyio
    async def test_notification_created_once(self, session_factory, user, make_intent):
        async with session_factory() as s:
            intent = await make_intent(s)

        service = SettlementService(notifier=NotificationService(session_factory))
        async with session_factory() as s:
            await service.settle(s, intent.id, SOLANA_SIGNATURE)
        async with session_factory() as s:
            await service.settle(s, intent.id, SOLANA_SIGNATURE)

        async with session_factory() as s:
            rows = (await s.execute(select(Notification))).scalars().all()
        assert len(rows) == 1
        assert rows[0].reference == vote_purchase_reference(intent.id)
        assert rows[0].payload["votes"] == 10

    @pytest.mark.anyio
    async def test_notification_failure_does_not_undo_settlement(self, session_factory, user, make_intent, caplog):
        async with session_factory() as s:
            intent = await make_intent(s)

        publisher = AsyncMock(side_effect=RuntimeError("socket closed"))
        service = SettlementService(notifier=NotificationService(session_factory, publisher=publisher))
        async with session_factory() as s:
            outcome = await service.settle(s, intent.id, SOLANA_SIGNATURE)

        assert outcome.result == "completed"
        assert await _balance(session_factory) == 10
        publisher.assert_awaited_once()
        assert "vote_purchase_notify_failed" in caplog.text

# Fin del archivo backend/tests/modules/billing/test_settlement_service.py
