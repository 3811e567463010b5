"""
Repository for award eligibility.
"""

from typing import List

import structlog
from sqlalchemy import select, func

from xp_minting.core.database import get_async_session
from xp_minting.core.exceptions import EligibilityQueryError, ValidationError
from xp_minting.models.award_log import ActionKind, AwardLog
from xp_minting.models.user import User
from xp_minting.services.awards.core.types import Subject, period_bounds
from xp_minting.utils.validation import normalize_address


logger = structlog.get_logger(__name__)


class EligibilitySelector:
    """
    Finds subjects that qualified for a reward in a period and do not yet
    hold a confirmed award for it.
    """

    def __init__(self):
        self.logger = logger.bind(service="eligibility_selector")

    async def select_eligible(self, period_key: str, action_kind: ActionKind = ActionKind.DAILY_LOGIN) -> List[Subject]:
        """
        Return subjects active in ``[period start, period start + 24h)`` with a
        linked address and no confirmed award for (address, kind, period).

        Raises:
            ValidationError: bad period key or an action kind with no activity source
            EligibilityQueryError: the data store could not be read
        """
        period_start, period_end = period_bounds(period_key)
        try:
            kind = ActionKind(action_kind)
        except ValueError:
            raise ValidationError(f"Unknown action kind: {action_kind!r}", {"action_kind": str(action_kind)})
        if kind != ActionKind.DAILY_LOGIN:
            raise ValidationError(
                f"No activity source for action kind {kind.value}",
                {"action_kind": kind.value}
            )

        normalized_wallet = func.lower(func.trim(User.wallet_address))
        confirmed_award = (
            select(AwardLog.id)
            .where(
                AwardLog.address == normalized_wallet,
                AwardLog.action_kind == kind.value,
                AwardLog.period_key == period_key,
                AwardLog.confirmed_on_ledger == True  # noqa: E712
            )
            .correlate(User)
        )

        try:
            async with get_async_session() as db:
                result = await db.execute(
                    select(User.id, User.wallet_address, User.last_login)
                    .where(
                        User.last_login >= period_start,
                        User.last_login < period_end,
                        User.wallet_address.is_not(None),
                        func.trim(User.wallet_address) != "",
                        ~confirmed_award.exists()
                    )
                    .order_by(User.last_login, User.id)
                )
                rows = result.fetchall()
        except Exception as e:
            self.logger.error(
                "Eligibility query failed",
                period_key=period_key,
                action_kind=kind.value,
                error=str(e)
            )
            raise EligibilityQueryError(period_key, str(e)) from e

        subjects: List[Subject] = []
        seen = set()
        for user_id, wallet_address, last_login in rows:
            address = normalize_address(wallet_address)
            if not address or address in seen:
                continue
            seen.add(address)
            subjects.append(Subject(address=address, user_id=user_id, last_login=last_login))

        self.logger.info(
            "Selected eligible subjects",
            period_key=period_key,
            action_kind=kind.value,
            count=len(subjects)
        )

        return subjects
