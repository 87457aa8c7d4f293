"""
Test the event log sync engine end to end against an in-memory chain.
"""

from datetime import timedelta

import pytest

from fundsync.core.exceptions import ChainError
from fundsync.indexer.core.run_lock import SyncRunLock
from fundsync.models import (
    Contract,
    ContractKind,
    EventAction,
    EventLog,
    Fund,
    Referral,
    SyncRunLog,
    SyncRunStatus,
    SyncTrigger,
    Token,
    TokenStatus,
)
from fundsync.models.base import utcnow

from conftest import (
    ALICE,
    BOB,
    SFT_ADDRESS,
    VAULT_ADDRESS,
    WEI,
    add_event_log,
    count_rows,
    create_token,
    create_user,
    fetch_all,
    uint_topic,
)


@pytest.mark.asyncio
async def test_rejects_when_no_fund_exists(sync_engine, session_maker, fetcher):
    """Zero funds: one Rejected run log, no chain calls."""
    result = await sync_engine.run()

    assert result.status == SyncRunStatus.REJECTED
    assert result.message == "Fund not initialized"
    assert fetcher.calls == []

    run_logs = await fetch_all(session_maker, SyncRunLog)
    assert len(run_logs) == 1
    assert run_logs[0].status == SyncRunStatus.REJECTED
    assert run_logs[0].message == "Fund not initialized"
    assert run_logs[0].trigger == SyncTrigger.MANUAL
    assert run_logs[0].total_synced == 0
    assert run_logs[0].latest_token_event_log_block_number == 0
    assert run_logs[0].latest_token_event_log_index == 0


@pytest.mark.asyncio
async def test_rejects_when_no_sft_contract(sync_engine, session_maker, fetcher):
    async with session_maker() as db:
        async with db.begin():
            db.add(Fund(
                name="Vault only",
                vault=Contract(kind=ContractKind.VAULT, contract_address=VAULT_ADDRESS),
            ))

    result = await sync_engine.run()

    assert result.message == "No SFT contract found"
    assert not result.fulfilled
    assert fetcher.calls == []
    assert await count_rows(session_maker, SyncRunLog) == 1


@pytest.mark.asyncio
async def test_rejects_when_no_vault_contract(sync_engine, session_maker, fetcher):
    async with session_maker() as db:
        async with db.begin():
            db.add(Fund(
                name="SFT only",
                sft=Contract(kind=ContractKind.SFT, contract_address=SFT_ADDRESS),
            ))
            db.add(Fund(
                name="Empty vault address",
                sft=Contract(kind=ContractKind.SFT, contract_address=SFT_ADDRESS),
                vault=Contract(kind=ContractKind.VAULT, contract_address=None),
            ))

    result = await sync_engine.run(trigger=SyncTrigger.CRON_JOB)

    assert result.message == "No Vault contract found"
    assert fetcher.calls == []
    run_logs = await fetch_all(session_maker, SyncRunLog)
    assert [r.trigger for r in run_logs] == [SyncTrigger.CRON_JOB]


@pytest.mark.asyncio
async def test_fetches_sft_and_vault_logs_from_checkpoint_block(
    sync_engine, fund, session_maker, fetcher
):
    await add_event_log(session_maker, block_number=42, log_index=3)

    await sync_engine.run()

    assert len(fetcher.calls) == 2
    sft_call, vault_call = fetcher.calls
    assert sft_call["from_block"] == 42
    assert sft_call["addresses"] == [SFT_ADDRESS.lower()]
    assert len(sft_call["topics"]) == 3
    assert vault_call["from_block"] == 42
    assert vault_call["addresses"] == [VAULT_ADDRESS.lower()]
    assert len(vault_call["topics"]) == 1


@pytest.mark.asyncio
async def test_successful_run_reports_pre_run_checkpoint(
    sync_engine, fund, session_maker, fetcher, logs
):
    await add_event_log(session_maker, block_number=5, log_index=2)
    fetcher.add(
        logs.mint(ALICE, 1, block_number=6, log_index=0),
        logs.mint(ALICE, 2, block_number=6, log_index=1),
    )

    result = await sync_engine.run()

    assert result.fulfilled
    assert result.message == "Sync event log successfully"
    assert result.total_synced == 2
    assert (result.checkpoint.block_number, result.checkpoint.log_index) == (5, 2)

    run_log = (await fetch_all(session_maker, SyncRunLog))[-1]
    assert run_log.status == SyncRunStatus.FULFILLED
    assert run_log.latest_token_event_log_block_number == 5
    assert run_log.latest_token_event_log_index == 2
    assert run_log.total_synced == 2

    # the resumable checkpoint advanced with the applied logs
    checkpoint = await sync_engine.checkpoint_store.current_checkpoint()
    assert (checkpoint.block_number, checkpoint.log_index) == (6, 1)


@pytest.mark.asyncio
async def test_rerun_is_idempotent(sync_engine, fund, session_maker, fetcher, logs):
    """Second run over the same logs applies nothing and leaves state unchanged."""
    await create_token(session_maker, fund, 10, ALICE, token_value="1000")
    fetcher.add(
        logs.mint(ALICE, 1, block_number=10, log_index=0),
        logs.transfer_value(10, 1, 400, block_number=10, log_index=1),
        logs.slot_changed(1, 0, 2, block_number=11, log_index=0),
        logs.transfer(ALICE, BOB, 1, block_number=11, log_index=3),
    )

    first = await sync_engine.run()
    tokens_after_first = [
        (t.token_id, t.owner, t.token_value, t.status, t.package_id)
        for t in await fetch_all(session_maker, Token)
    ]
    event_logs_after_first = await count_rows(session_maker, EventLog)

    second = await sync_engine.run()
    tokens_after_second = [
        (t.token_id, t.owner, t.token_value, t.status, t.package_id)
        for t in await fetch_all(session_maker, Token)
    ]

    assert first.total_synced == 4
    assert second.fulfilled
    assert second.total_synced == 0
    assert second.stats.skipped == 2
    assert tokens_after_second == tokens_after_first
    assert await count_rows(session_maker, EventLog) == event_logs_after_first == 4


@pytest.mark.asyncio
async def test_same_block_logs_at_or_below_checkpoint_are_skipped(
    sync_engine, fund, session_maker, fetcher, logs
):
    await add_event_log(session_maker, block_number=5, log_index=5)
    fetcher.add(
        logs.mint(ALICE, 1, block_number=5, log_index=5),
        logs.mint(ALICE, 2, block_number=5, log_index=7),
    )

    result = await sync_engine.run()

    assert result.total_synced == 1
    assert result.stats.skipped == 1
    tokens = await fetch_all(session_maker, Token)
    assert [t.token_id for t in tokens] == [uint_topic(2)]


@pytest.mark.asyncio
async def test_earlier_log_index_in_later_block_is_applied(
    sync_engine, fund, session_maker, fetcher, logs
):
    await add_event_log(session_maker, block_number=5, log_index=9)
    fetcher.add(logs.mint(ALICE, 1, block_number=6, log_index=0))

    result = await sync_engine.run()

    assert result.total_synced == 1
    assert await count_rows(session_maker, Token) == 1


@pytest.mark.asyncio
async def test_mint_then_burn(sync_engine, fund, session_maker, fetcher, logs):
    fetcher.add(
        logs.mint(ALICE, 7, block_number=1, log_index=0),
        logs.burn(ALICE, 7, block_number=1, log_index=1),
    )

    result = await sync_engine.run()

    assert result.total_synced == 2
    tokens = await fetch_all(session_maker, Token)
    assert len(tokens) == 1
    assert tokens[0].status == TokenStatus.BURNED
    assert tokens[0].is_burned
    assert tokens[0].owner.lower() == ALICE.lower()
    assert [e.action for e in await fetch_all(session_maker, EventLog)] == [
        EventAction.MINT_PACKAGE,
        EventAction.BURN,
    ]


@pytest.mark.asyncio
async def test_transfer_value_is_exact(sync_engine, fund, session_maker, fetcher, logs):
    balance_a = 123456789012345678901234567890
    balance_b = 1
    value = 98765432109876543210
    await create_token(session_maker, fund, 1, ALICE, token_value=str(balance_a))
    await create_token(session_maker, fund, 2, BOB, token_value=str(balance_b))
    fetcher.add(logs.transfer_value(1, 2, value, block_number=3, log_index=0))

    await sync_engine.run()

    token_a, token_b = await fetch_all(session_maker, Token)
    assert token_a.token_value == str(balance_a - value)
    assert token_b.token_value == str(balance_b + value)


@pytest.mark.asyncio
async def test_stake_then_unstake_restores_referral(
    sync_engine, fund, session_maker, fetcher, logs
):
    await create_user(session_maker, ALICE, staked_value=10)
    await create_token(session_maker, fund, 3, ALICE, token_value=str(24 * WEI // 10))
    fetcher.add(
        logs.transfer(ALICE, VAULT_ADDRESS, 3, block_number=2, log_index=0),
        logs.transfer(VAULT_ADDRESS, ALICE, 3, block_number=3, log_index=0),
    )

    result = await sync_engine.run()

    assert result.total_synced == 2
    referral = (await fetch_all(session_maker, Referral))[0]
    assert referral.staked_value == 10
    token = (await fetch_all(session_maker, Token))[0]
    assert token.status == TokenStatus.HOLDING
    assert [e.action for e in await fetch_all(session_maker, EventLog)] == [
        EventAction.STAKE,
        EventAction.UNSTAKE,
    ]


@pytest.mark.asyncio
async def test_log_without_matching_fund_is_counted_and_audited(
    sync_engine, fund, session_maker, fetcher, logs
):
    stranger = "0x3333333333333333333333333333333333333333"
    fetcher.inject(logs.mint(ALICE, 1, address=stranger, block_number=4, log_index=0))

    result = await sync_engine.run()

    assert result.fulfilled
    assert result.total_synced == 1
    assert result.stats.unmatched_funds == 1
    assert await count_rows(session_maker, Token) == 0
    event_logs = await fetch_all(session_maker, EventLog)
    assert len(event_logs) == 1
    assert event_logs[0].action == EventAction.MINT_PACKAGE
    assert event_logs[0].contract_address == stranger


@pytest.mark.asyncio
async def test_unknown_signature_is_counted_but_ignored(
    sync_engine, fund, session_maker, fetcher, logs
):
    fetcher.inject(logs.raw_log(SFT_ADDRESS, ["0x" + "12" * 32], block_number=2))

    result = await sync_engine.run()

    assert result.fulfilled
    assert result.total_synced == 1
    assert result.stats.unknown_events == 1
    assert await count_rows(session_maker, EventLog) == 0


@pytest.mark.asyncio
async def test_fetch_failure_rejects_run(sync_engine, fund, session_maker, fetcher):
    await add_event_log(session_maker, block_number=8, log_index=1)
    fetcher.error = ChainError("node unavailable")

    result = await sync_engine.run()

    assert result.status == SyncRunStatus.REJECTED
    assert result.message == "node unavailable"
    run_log = (await fetch_all(session_maker, SyncRunLog))[-1]
    assert run_log.status == SyncRunStatus.REJECTED
    assert run_log.message == "node unavailable"
    assert run_log.total_synced == 0
    assert run_log.latest_token_event_log_block_number == 0
    assert run_log.latest_token_event_log_index == 0


@pytest.mark.asyncio
async def test_decode_failure_keeps_earlier_logs_and_stops(
    sync_engine, fund, session_maker, fetcher, logs
):
    malformed = logs.raw_log(
        SFT_ADDRESS,
        # Transfer signature with a missing indexed topic
        [logs.mint(ALICE, 1).topics[0], "0x" + "00" * 32],
        block_number=2,
        log_index=0,
    )
    fetcher.add(
        logs.mint(ALICE, 1, block_number=1, log_index=0),
        malformed,
        logs.mint(ALICE, 2, block_number=3, log_index=0),
    )

    result = await sync_engine.run()

    assert result.status == SyncRunStatus.REJECTED
    assert result.total_synced == 0
    assert result.stats.total_synced == 2
    assert [t.token_id for t in await fetch_all(session_maker, Token)] == [uint_topic(1)]
    assert await count_rows(session_maker, EventLog) == 1


@pytest.mark.asyncio
async def test_handler_failure_rolls_back_that_log(
    make_engine, fund, session_maker, fetcher, logs
):
    class FailingEarningService:
        async def log_earning_record(self, db, **kwargs):
            raise RuntimeError("earning service down")

    await create_user(session_maker, ALICE, staked_value=0)
    fetcher.add(
        logs.mint(ALICE, 1, block_number=1, log_index=0),
        logs.claim(ALICE, 2 * WEI, block_number=2, log_index=0),
    )
    engine = make_engine(earning_service=FailingEarningService())

    result = await engine.run()

    assert result.status == SyncRunStatus.REJECTED
    assert result.message == "earning service down"
    event_logs = await fetch_all(session_maker, EventLog)
    assert [e.action for e in event_logs] == [EventAction.MINT_PACKAGE]


@pytest.mark.asyncio
async def test_run_rejected_while_another_holds_the_lock(
    sync_engine, fund, session_maker, fetcher, db_engine, lock_key
):
    other = SyncRunLock(db_engine, lock_key)
    assert await other.acquire()
    try:
        result = await sync_engine.run()
    finally:
        await other.release()

    assert result.status == SyncRunStatus.REJECTED
    assert result.message == "Sync already in progress"
    assert fetcher.calls == []

    # lock released, next run proceeds
    assert (await sync_engine.run()).fulfilled


@pytest.mark.asyncio
async def test_run_prunes_old_fulfilled_cron_runs(sync_engine, fund, session_maker):
    old = utcnow() - timedelta(days=4)
    async with session_maker() as db:
        async with db.begin():
            db.add_all([
                SyncRunLog(trigger=SyncTrigger.CRON_JOB, status=SyncRunStatus.FULFILLED,
                           message="old cron", created_at=old),
                SyncRunLog(trigger=SyncTrigger.MANUAL, status=SyncRunStatus.FULFILLED,
                           message="old manual", created_at=old),
                SyncRunLog(trigger=SyncTrigger.CRON_JOB, status=SyncRunStatus.REJECTED,
                           message="old rejected", created_at=old),
            ])

    await sync_engine.run(trigger=SyncTrigger.CRON_JOB)

    messages = [r.message for r in await fetch_all(session_maker, SyncRunLog)]
    assert messages == ["old manual", "old rejected", "Sync event log successfully"]
