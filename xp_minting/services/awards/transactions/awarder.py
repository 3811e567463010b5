"""
Ledger awarder - submits one reward mint and classifies the outcome.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import aiohttp
import structlog

from xp_minting.core.config import AwardConfig
from xp_minting.core.exceptions import LedgerError, LedgerSubmissionTimeout, XPMintingException
from xp_minting.services.awards.blockchain.points_contract import PointsLedgerClient, LedgerReceipt, PreparedAward
from xp_minting.services.awards.blockchain.revert_decoder import AlreadyAppliedClassifier, decode_revert
from xp_minting.services.awards.core.types import AwardOutcome


logger = structlog.get_logger(__name__)

# Transport-level failures; safe to retry only before broadcast
TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class _Submission:
    """Tracks what is known about an in-flight submission."""

    def __init__(self):
        self.tx_hash: Optional[str] = None


class LedgerAwarder:
    """
    Awards a subject on the Points contract.

    Shadow mode (award_onchain disabled) never touches the ledger and grants
    the reward off-ledger. In on-chain mode the call is signed with the
    service key, broadcast once and awaited until mined. Only the pre-broadcast
    build step is retried; anything after broadcast is left to the next run
    under the same action id.
    """

    def __init__(
        self,
        config: AwardConfig,
        ledger_client: Optional[PointsLedgerClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.config = config
        self.logger = logger.bind(service="ledger_awarder")
        self.ledger = ledger_client
        if self.ledger is None and config.award_onchain:
            self.ledger = PointsLedgerClient(config)
        self.classifier = AlreadyAppliedClassifier(
            config.already_applied_errors,
            config.already_applied_markers
        )
        self._sleep = sleep or asyncio.sleep

    async def award(self, address: str, amount: int, action_id: str) -> AwardOutcome:
        """Award ``amount`` to ``address`` under ``action_id``. Never raises."""
        if not self.config.award_onchain:
            self.logger.info(
                "Shadow mode: skipping on-chain award",
                address=address,
                amount=amount,
                action_id=action_id
            )
            return AwardOutcome.off_ledger()

        submission = _Submission()
        try:
            return await asyncio.wait_for(
                self._submit(address, amount, action_id, submission),
                timeout=self.config.submission_timeout
            )
        except asyncio.TimeoutError:
            error = LedgerSubmissionTimeout(self.config.submission_timeout)
            self.logger.error(
                "Award submission timed out",
                address=address,
                action_id=action_id,
                tx_hash=submission.tx_hash,
                timeout=self.config.submission_timeout
            )
            return AwardOutcome.failed(error.message, submission.tx_hash)
        except Exception as e:
            return self._classify_failure(address, action_id, e, submission.tx_hash)

    async def _submit(self, address: str, amount: int, action_id: str, submission: _Submission) -> AwardOutcome:
        prepared = await self._build_with_backoff(address, amount, action_id)

        try:
            submission.tx_hash = await self.ledger.send_transaction(prepared)
        except TRANSIENT_ERRORS as e:
            raise LedgerError(f"Transaction broadcast failed: {e or type(e).__name__}") from e

        self.logger.info(
            "Award transaction sent",
            address=address,
            amount=amount,
            action_id=action_id,
            tx_hash=submission.tx_hash,
            nonce=prepared.nonce
        )

        receipt = await self.ledger.wait_for_receipt(submission.tx_hash, self.config.submission_timeout)
        if receipt.succeeded:
            self.logger.info(
                "Award transaction confirmed",
                address=address,
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number
            )
            return AwardOutcome.confirmed(receipt.tx_hash)

        return await self._explain_revert(address, amount, action_id, receipt)

    async def _build_with_backoff(self, address: str, amount: int, action_id: str) -> PreparedAward:
        max_attempts = max(1, self.config.build_max_attempts)
        for attempt in range(1, max_attempts + 1):
            try:
                return await self.ledger.build_award_transaction(address, amount, action_id)
            except TRANSIENT_ERRORS as e:
                if attempt == max_attempts:
                    raise LedgerError(
                        f"Ledger unreachable after {max_attempts} attempts: {e or type(e).__name__}",
                        {"address": address, "action_id": action_id}
                    ) from e

                wait_time = self.config.backoff_base_seconds * (2 ** (attempt - 1))
                self.logger.warning(
                    "Transient ledger error while building award, retrying",
                    address=address,
                    attempt=attempt,
                    wait_time=wait_time,
                    error=str(e)
                )
                await self._sleep(wait_time)

    async def _explain_revert(
        self,
        address: str,
        amount: int,
        action_id: str,
        receipt: LedgerReceipt
    ) -> AwardOutcome:
        """A mined transaction reverted; replay it to learn why."""
        try:
            await self.ledger.replay_award(address, amount, action_id, receipt.block_number)
        except Exception as e:
            reason = decode_revert(e)
            if self.classifier.matches(reason):
                self.logger.info(
                    "Reverted award was already applied on ledger",
                    address=address,
                    action_id=action_id,
                    tx_hash=receipt.tx_hash
                )
                return AwardOutcome.applied_previously(receipt.tx_hash)
            detail = reason.message if reason else self._error_message(e)
            return AwardOutcome.failed(f"Transaction reverted on-chain: {detail}", receipt.tx_hash)

        return AwardOutcome.failed("Transaction reverted on-chain without reason", receipt.tx_hash)

    def _classify_failure(
        self,
        address: str,
        action_id: str,
        exc: BaseException,
        tx_hash: Optional[str]
    ) -> AwardOutcome:
        reason = decode_revert(exc)
        if self.classifier.matches(reason):
            self.logger.info(
                "ActionId already used on ledger, marking as success",
                address=address,
                action_id=action_id,
                reason_source=reason.source,
                selector=reason.selector
            )
            return AwardOutcome.applied_previously()

        message = self._error_message(exc)
        self.logger.error(
            "Failed to award on-chain",
            address=address,
            action_id=action_id,
            tx_hash=tx_hash,
            error=message
        )
        return AwardOutcome.failed(message, tx_hash)

    @staticmethod
    def _error_message(exc: BaseException) -> str:
        if isinstance(exc, XPMintingException):
            return exc.message
        message = getattr(exc, "message", None) or str(exc)
        return str(message) if message else type(exc).__name__
