"""Persistence reads and writes used by the orchestrator and settlement engine.

All functions take an AsyncSession. Write helpers that must be atomic
(store_prediction) commit their own transaction; the others leave commit
to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pundits.models import (
    Agent,
    Match,
    MatchStatus,
    Prediction,
    PredictionLog,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Referenced match or agent does not exist."""

    pass


@dataclass
class PredictionRecord:
    """Everything needed to persist one successful agent call."""

    match_id: str
    agent_id: str
    predicted_winner: str
    predicted_team_name: str
    confidence: float
    reasoning: str
    prediction_window: str
    raw_prompt: str
    raw_response: str
    search_queries: list = field(default_factory=list)
    tokens_in: int = 0
    tokens_out: int = 0
    tokens_used: int = 0
    latency_ms: int = 0
    cost_usd: Optional[float] = None


# =============================================================================
# READS
# =============================================================================


async def get_match(session: AsyncSession, match_id: str) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


async def get_agent(session: AsyncSession, id_or_slug: str) -> Agent:
    result = await session.execute(
        select(Agent).where(or_(Agent.id == id_or_slug, Agent.slug == id_or_slug))
    )
    agent = result.scalars().first()
    if agent is None:
        raise NotFoundError(f"Agent {id_or_slug} not found")
    return agent


async def get_active_agents(
    session: AsyncSession, agent_ids: Optional[Iterable[str]] = None
) -> list[Agent]:
    """Active agents, optionally restricted to an id set."""
    query = select(Agent).where(Agent.is_active == True)  # noqa: E712
    if agent_ids is not None:
        ids = list(agent_ids)
        if not ids:
            return []
        query = query.where(Agent.id.in_(ids))
    result = await session.execute(query.order_by(Agent.id))
    return list(result.scalars().all())


async def get_upcoming_matches(
    session: AsyncSession, now: Optional[datetime] = None, hours: int = 48
) -> list[Match]:
    """Upcoming matches scheduled between now and now + hours."""
    now = now or utcnow()
    result = await session.execute(
        select(Match)
        .where(
            and_(
                Match.status == MatchStatus.UPCOMING.value,
                Match.scheduled_at >= now,
                Match.scheduled_at <= now + timedelta(hours=hours),
            )
        )
        .order_by(Match.scheduled_at)
    )
    return list(result.scalars().all())


async def get_predictions_for_window(
    session: AsyncSession, match_id: str, window: str
) -> list[Prediction]:
    result = await session.execute(
        select(Prediction).where(
            and_(Prediction.match_id == match_id, Prediction.prediction_window == window)
        )
    )
    return list(result.scalars().all())


async def get_predictions_for_agent(
    session: AsyncSession, match_id: str, agent_id: str
) -> list[Prediction]:
    result = await session.execute(
        select(Prediction)
        .where(and_(Prediction.match_id == match_id, Prediction.agent_id == agent_id))
        .order_by(Prediction.created_at)
    )
    return list(result.scalars().all())


async def get_latest_predictions(session: AsyncSession, match_id: str) -> list[Prediction]:
    result = await session.execute(
        select(Prediction).where(
            and_(Prediction.match_id == match_id, Prediction.is_latest == True)  # noqa: E712
        )
    )
    return list(result.scalars().all())


# =============================================================================
# WRITES
# =============================================================================


async def store_prediction(session: AsyncSession, record: PredictionRecord) -> str:
    """
    Supersede prior rows for (match, agent), insert the new latest prediction
    and its log row, all in one transaction.

    The UPDATE runs first so the writer takes the row/table write lock before
    inserting; a concurrent writer for the same pair waits, then supersedes
    this row in turn. The partial unique index on is_latest backs this up.

    Returns:
        The new prediction id.
    """
    prediction_id = new_id()
    now = utcnow()

    try:
        await session.execute(
            update(Prediction)
            .where(
                and_(
                    Prediction.match_id == record.match_id,
                    Prediction.agent_id == record.agent_id,
                    Prediction.is_latest == True,  # noqa: E712
                )
            )
            .values(is_latest=False)
        )

        session.add(
            Prediction(
                id=prediction_id,
                match_id=record.match_id,
                agent_id=record.agent_id,
                predicted_winner=record.predicted_winner,
                predicted_team_name=record.predicted_team_name,
                confidence=record.confidence,
                reasoning=record.reasoning,
                prediction_window=record.prediction_window,
                is_latest=True,
                search_queries=list(record.search_queries),
                created_at=now,
            )
        )
        # Prediction must exist before the log row references it
        await session.flush()

        session.add(
            PredictionLog(
                prediction_id=prediction_id,
                match_id=record.match_id,
                agent_id=record.agent_id,
                prediction_window=record.prediction_window,
                raw_prompt=record.raw_prompt,
                raw_response=record.raw_response,
                tokens_in=record.tokens_in,
                tokens_out=record.tokens_out,
                tokens_used=record.tokens_used,
                latency_ms=record.latency_ms,
                cost_usd=record.cost_usd,
                created_at=now,
            )
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return prediction_id


async def store_failure_log(
    session: AsyncSession,
    match_id: str,
    agent_id: str,
    prediction_window: str,
    raw_prompt: str,
    error_message: str,
) -> str:
    """Insert an audit row for a terminal failure. No prediction is touched."""
    log = PredictionLog(
        prediction_id=None,
        match_id=match_id,
        agent_id=agent_id,
        prediction_window=prediction_window,
        raw_prompt=raw_prompt,
        raw_response=None,
        error_message=error_message[:500],
    )
    session.add(log)
    await session.commit()
    return log.id


async def update_settlement(
    session: AsyncSession,
    prediction_id: str,
    is_correct: Optional[bool],
    points_awarded: int,
    pnl: float,
    brier_score: Optional[float],
    only_unsettled: bool = False,
) -> bool:
    """
    Write settlement fields on one prediction. Caller commits.

    With only_unsettled=True the row is left alone if is_correct is already
    set. Returns True if a row was updated.
    """
    conditions = [Prediction.id == prediction_id]
    if only_unsettled:
        conditions.append(Prediction.is_correct.is_(None))

    result = await session.execute(
        update(Prediction)
        .where(and_(*conditions))
        .values(
            is_correct=is_correct,
            points_awarded=points_awarded,
            pnl=pnl,
            brier_score=brier_score,
        )
    )
    return result.rowcount > 0
