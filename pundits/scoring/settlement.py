"""
Settlement engine.

Scores the latest predictions of a finished match. Completed matches only
touch rows whose is_correct is still NULL, so settling twice is a no-op.
Abandoned matches void every latest row, including ones settled earlier.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pundits.models import MatchStatus, Side, utcnow
from pundits.repository import get_latest_predictions, get_match, update_settlement
from pundits.scoring.metrics import (
    STAKE,
    calculate_brier_score,
    calculate_pnl,
    calculate_points,
)
from pundits.telemetry import record_settlement

logger = logging.getLogger(__name__)

VALID_WINNERS = {Side.TEAM_A.value, Side.TEAM_B.value}


class SettlementEngine:
    """Settles predictions for one match at a time. Commits its own writes."""

    def __init__(self, session: AsyncSession, stake: float = STAKE):
        self.session = session
        self.stake = stake

    async def settle_completed(self, match_id: str, winner: str) -> int:
        """
        Score unsettled latest predictions against the winning side.

        Returns:
            Number of predictions settled by this call.
        """
        if winner not in VALID_WINNERS:
            raise ValueError(f"winner must be team_a or team_b, got {winner!r}")

        predictions = await get_latest_predictions(self.session, match_id)
        settled = 0
        correct = 0

        for prediction in predictions:
            if prediction.is_correct is not None:
                continue

            is_correct = prediction.predicted_winner == winner
            updated = await update_settlement(
                self.session,
                prediction.id,
                is_correct=is_correct,
                points_awarded=calculate_points(is_correct),
                pnl=calculate_pnl(prediction.confidence, is_correct, self.stake),
                brier_score=calculate_brier_score(prediction.confidence, is_correct),
                only_unsettled=True,
            )
            if updated:
                settled += 1
                correct += int(is_correct)

        await self.session.commit()

        record_settlement("correct", correct)
        record_settlement("incorrect", settled - correct)
        logger.info(
            f"[SETTLEMENT] match={match_id} winner={winner}: settled {settled} "
            f"({correct} correct)"
        )
        return settled

    async def settle_abandoned(self, match_id: str) -> int:
        """Void every latest prediction on the match. Returns rows voided."""
        predictions = await get_latest_predictions(self.session, match_id)

        for prediction in predictions:
            await update_settlement(
                self.session,
                prediction.id,
                is_correct=None,
                points_awarded=0,
                pnl=0.0,
                brier_score=None,
            )

        await self.session.commit()

        record_settlement("void", len(predictions))
        logger.info(f"[SETTLEMENT] match={match_id} abandoned: voided {len(predictions)}")
        return len(predictions)

    async def record_result(
        self,
        match_id: str,
        winner: str,
        winner_team_name: Optional[str] = None,
        result_summary: Optional[str] = None,
    ) -> int:
        """
        Mark the match completed and settle it.

        Raises:
            NotFoundError: match does not exist.
            ValueError: winner is not team_a/team_b.
        """
        if winner not in VALID_WINNERS:
            raise ValueError(f"winner must be team_a or team_b, got {winner!r}")

        match = await get_match(self.session, match_id)
        match.status = MatchStatus.COMPLETED.value
        match.winner = winner
        match.winner_team_name = winner_team_name or match.team_name(winner)
        match.result_summary = result_summary
        match.updated_at = utcnow()
        self.session.add(match)
        await self.session.flush()

        return await self.settle_completed(match_id, winner)

    async def record_abandoned(self, match_id: str, result_summary: Optional[str] = None) -> int:
        """Mark the match abandoned and void its predictions."""
        match = await get_match(self.session, match_id)
        match.status = MatchStatus.ABANDONED.value
        match.winner = None
        match.winner_team_name = None
        if result_summary is not None:
            match.result_summary = result_summary
        match.updated_at = utcnow()
        self.session.add(match)
        await self.session.flush()

        return await self.settle_abandoned(match_id)
