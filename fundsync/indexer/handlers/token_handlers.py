"""
Event handlers for SFT contract events.
"""

from decimal import localcontext
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fundsync.core.config import settings
from fundsync.indexer.core.event_classifier import (
    SlotChangedEvent,
    TransferTokenEvent,
    TransferValueEvent,
    format_token_id,
    is_same_address,
)
from fundsync.indexer.core.types import RawLog, SyncStats
from fundsync.models.event_log import EventAction
from fundsync.models.fund import Fund
from fundsync.models.token import Token, TokenStatus
from fundsync.utils.amounts import (
    AMOUNT_CONTEXT,
    add_amounts,
    from_wei,
    round_to_int,
    sub_amounts,
    to_decimal,
)

from .base import BaseHandlers


class TokenHandlers(BaseHandlers):
    """
    Handles SFT Transfer, TransferValue and SlotChanged events.
    """

    service_name = "token_handlers"

    def __init__(self, stats: SyncStats, token_decimals: Optional[int] = None):
        super().__init__(stats)
        self.token_decimals = (
            settings.token_decimals if token_decimals is None else token_decimals
        )

    async def handle_transfer_value(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferValueEvent,
        fund: Optional[Fund],
    ):
        """Move value between two tokens; missing tokens are skipped."""
        await self.record_event_log(db, EventAction.TRANSFER_VALUE, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        from_token = await self.find_token(
            db, fund.sft_address, format_token_id(event.from_token_id)
        )
        if from_token is not None:
            from_token.token_value = sub_amounts(from_token.token_value, event.value)

        to_token = await self.find_token(
            db, fund.sft_address, format_token_id(event.to_token_id)
        )
        if to_token is not None:
            to_token.token_value = add_amounts(to_token.token_value, event.value)

        self.logger.info(
            "Value transferred",
            from_token_id=event.from_token_id,
            to_token_id=event.to_token_id,
            value=str(event.value)
        )

    async def handle_slot_changed(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: SlotChangedEvent,
        fund: Optional[Fund],
    ):
        """Point the token at the fund's package for its new slot."""
        await self.record_event_log(db, EventAction.CHANGE_SLOT, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        token = await self.find_token(db, fund.sft_address, format_token_id(event.token_id))
        if token is None:
            return

        package = fund.find_package(str(event.new_slot))
        if package is None:
            self.miss("package", fund_id=fund.id, slot=event.new_slot)
        token.package_id = package.id if package else None

        self.logger.info(
            "Token slot changed",
            token_id=event.token_id,
            new_slot=event.new_slot,
            package_id=token.package_id
        )

    async def handle_transfer_token(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Optional[Fund],
    ):
        """Dispatch a Transfer to mint, burn, unstake, stake or plain transfer."""
        vault_address = fund.vault_address if fund else None

        if event.is_mint:
            await self.handle_mint(db, raw_log, event, fund)
        elif event.is_burn:
            await self.handle_burn(db, raw_log, event, fund)
        elif is_same_address(event.from_address, vault_address):
            await self.handle_unstake(db, raw_log, event, fund)
        elif is_same_address(event.to_address, vault_address):
            await self.handle_stake(db, raw_log, event, fund)
        else:
            await self.handle_owner_transfer(db, raw_log, event, fund)

    async def handle_mint(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Optional[Fund],
    ):
        """Transfer from the zero address creates the token."""
        await self.record_event_log(db, EventAction.MINT_PACKAGE, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        token = Token(
            fund_id=fund.id,
            contract_address=fund.sft_address,
            token_id=format_token_id(event.token_id),
            owner=event.to_address,
            token_value="0",
            status=TokenStatus.HOLDING,
        )
        db.add(token)

        self.logger.info("Token minted", token_id=token.token_id, owner=event.to_address)

    async def handle_burn(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Optional[Fund],
    ):
        """Transfer to the zero address marks the token burned."""
        await self.record_event_log(db, EventAction.BURN, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        token = await self.find_token(db, fund.sft_address, format_token_id(event.token_id))
        if token is None:
            return

        token.status = TokenStatus.BURNED
        self.logger.info("Token burned", token_id=token.token_id)

    async def handle_unstake(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Fund,
    ):
        """Transfer out of the vault: token back to Holding, referral stake reduced."""
        await self.record_event_log(db, EventAction.UNSTAKE, raw_log)

        token = await self.find_token(db, fund.sft_address, format_token_id(event.token_id))
        if token is None:
            return

        token.status = TokenStatus.HOLDING
        await self._adjust_staked_value(db, event.to_address, token, sign=-1)

        self.logger.info("Token unstaked", token_id=token.token_id, owner=event.to_address)

    async def handle_stake(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Fund,
    ):
        """Transfer into the vault: token Staking, referral stake increased."""
        await self.record_event_log(db, EventAction.STAKE, raw_log)

        token = await self.find_token(db, fund.sft_address, format_token_id(event.token_id))
        if token is None:
            return

        token.status = TokenStatus.STAKING
        await self._adjust_staked_value(db, event.from_address, token, sign=1)

        self.logger.info("Token staked", token_id=token.token_id, owner=event.from_address)

    async def handle_owner_transfer(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: TransferTokenEvent,
        fund: Optional[Fund],
    ):
        """Plain transfer between holders updates the owner."""
        await self.record_event_log(db, EventAction.TRANSFER_TOKEN, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        token = await self.find_token(db, fund.sft_address, format_token_id(event.token_id))
        if token is None:
            return

        token.owner = event.to_address
        self.logger.info("Token transferred", token_id=token.token_id, owner=event.to_address)

    async def _adjust_staked_value(
        self,
        db: AsyncSession,
        holder: str,
        token: Token,
        sign: int,
    ):
        """Apply +/- token value (whole units) to the holder's referral stake."""
        user = await self.find_user_by_address(db, holder)
        if user is None:
            return

        referral = await self.find_referral(db, user)
        if referral is None:
            return

        token_units = from_wei(token.token_value, self.token_decimals)
        with localcontext(AMOUNT_CONTEXT):
            staked = to_decimal(referral.staked_value or 0) + sign * token_units
        referral.staked_value = round_to_int(staked)

        self.logger.info(
            "Referral staked value updated",
            user_id=user.id,
            staked_value=referral.staked_value
        )
