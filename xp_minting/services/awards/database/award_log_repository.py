"""
Repository for the award log.
"""

from typing import List, Optional

import structlog
from sqlalchemy import select, func

from xp_minting.core.database import get_async_session
from xp_minting.core.exceptions import AuditLogWriteError
from xp_minting.models.award_log import ActionKind, AwardLog, AwardStatus
from xp_minting.services.awards.core.types import AwardAttempt, AwardPeriodStats
from xp_minting.utils.validation import normalize_address


logger = structlog.get_logger(__name__)


class AwardLogRepository:
    """
    Append-only access to award_logs.
    """

    def __init__(self):
        self.logger = logger.bind(service="award_log_repository")

    async def log_attempt(self, attempt: AwardAttempt) -> AwardLog:
        """
        Append one attempt.

        A second confirmed row for the same (address, kind, period) violates
        uq_award_logs_confirmed and is reported as AuditLogWriteError.
        """
        status = attempt.outcome.status
        address = normalize_address(attempt.address)
        entry = AwardLog(
            address=address,
            action_kind=ActionKind(attempt.action_kind).value,
            period_key=attempt.period_key,
            action_id=attempt.action_id,
            amount=attempt.amount,
            tx_hash=attempt.outcome.tx_hash,
            confirmed_on_ledger=status.confirmed_on_ledger,
            outcome=status.value,
            error_message=attempt.outcome.error
        )

        try:
            async with get_async_session() as db:
                db.add(entry)
                await db.flush()
        except Exception as e:
            self.logger.error(
                "Failed to write award log",
                address=address,
                action_id=attempt.action_id,
                outcome=status.value,
                error=str(e)
            )
            raise AuditLogWriteError(address, attempt.action_id, str(e)) from e

        self.logger.debug(
            "Award attempt logged",
            address=entry.address,
            period_key=entry.period_key,
            outcome=entry.outcome,
            tx_hash=entry.tx_hash
        )
        return entry

    async def query_by_period(
        self,
        period_key: str,
        action_kind: ActionKind = ActionKind.DAILY_LOGIN
    ) -> AwardPeriodStats:
        """Aggregate figures for one period."""
        kind = ActionKind(action_kind).value
        stats = AwardPeriodStats(period_key=period_key, action_kind=kind)

        async with get_async_session() as db:
            result = await db.execute(
                select(
                    AwardLog.outcome,
                    func.count(AwardLog.id),
                    func.coalesce(func.sum(AwardLog.amount), 0)
                )
                .where(
                    AwardLog.period_key == period_key,
                    AwardLog.action_kind == kind
                )
                .group_by(AwardLog.outcome)
            )
            by_outcome = {outcome: (count, amount) for outcome, count, amount in result.fetchall()}

            distinct = await db.execute(
                select(func.count(func.distinct(AwardLog.address)))
                .where(
                    AwardLog.period_key == period_key,
                    AwardLog.action_kind == kind
                )
            )
            stats.distinct_subjects = distinct.scalar() or 0

        for status in AwardStatus:
            count, amount = by_outcome.get(status.value, (0, 0))
            stats.total_attempts += count
            if status.is_success:
                stats.total_amount += int(amount)

        stats.confirmed = by_outcome.get(AwardStatus.CONFIRMED.value, (0, 0))[0]
        stats.already_applied = by_outcome.get(AwardStatus.ALREADY_APPLIED.value, (0, 0))[0]
        stats.granted_off_ledger = by_outcome.get(AwardStatus.GRANTED_OFF_LEDGER.value, (0, 0))[0]
        stats.failed = by_outcome.get(AwardStatus.FAILED.value, (0, 0))[0]

        return stats

    async def query_by_subject(
        self,
        address: str,
        period_key: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[AwardLog]:
        """History for one address, newest first."""
        query = select(AwardLog).where(AwardLog.address == normalize_address(address))
        if period_key:
            query = query.where(AwardLog.period_key == period_key)
        query = query.order_by(AwardLog.created_at.desc(), AwardLog.id.desc())
        if limit:
            query = query.limit(limit)

        async with get_async_session() as db:
            result = await db.execute(query)
            return list(result.scalars().all())
