"""
Leaderboard and analytics aggregation.

Everything here is computed from settled, latest predictions: rows with
is_latest true and a non-NULL is_correct. Voided (abandoned) and superseded
rows contribute nothing. The pure functions take plain model rows so they
can be exercised without a database; LeaderboardService does the loading.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import permutations
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pundits.models import Agent, Prediction, Side
from pundits.repository import get_agent
from pundits.scoring.metrics import STARTING_BANKROLL

logger = logging.getLogger(__name__)

SORT_KEYS = ("points", "pnl", "brier")

# Insight thresholds
CONFIDENT_AVG = 0.8
CAUTIOUS_AVG = 0.65
SIDE_BIAS_HIGH = 0.65
SIDE_BIAS_LOW = 0.35
HIGH_CONFIDENCE = 0.8
HIGH_CONFIDENCE_MIN_SAMPLE = 3
HIGH_CONFIDENCE_ACCURATE = 0.7
HIGH_CONFIDENCE_OVERCONFIDENT = 0.4
AGREEMENT_MIN_SHARED = 3
AGREES_ABOVE = 0.7
DISAGREES_BELOW = 0.3
CHANGED_MIND_MIN = 2
TRACK_RECORD_MIN_SETTLED = 3
STRONG_TRACK_RECORD = 0.65
NOTABLE_STREAK = 3


@dataclass
class AgentStanding:
    agent_id: str
    slug: str
    display_name: str
    provider: str
    color: Optional[str]
    total: int = 0
    correct: int = 0
    accuracy: float = 0.0
    points: int = 0
    total_pnl: float = 0.0
    bankroll: float = STARTING_BANKROLL
    avg_brier: Optional[float] = None
    avg_confidence: Optional[float] = None
    current_streak: int = 0
    best_streak: int = 0


@dataclass
class HeadToHead:
    """Agreement of agent_id with other_agent_id over matches both settled."""

    agent_id: str
    other_agent_id: str
    shared: int
    agreed: int

    @property
    def agreement_pct(self) -> float:
        return self.agreed / self.shared if self.shared else 0.0


@dataclass
class AgentProfile:
    standing: AgentStanding
    recent_predictions: list[Prediction] = field(default_factory=list)
    head_to_head: list[HeadToHead] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)


def is_settled(prediction: Prediction) -> bool:
    return prediction.is_latest and prediction.is_correct is not None


def compute_streaks(outcomes: Sequence[bool]) -> tuple[int, int]:
    """
    (current_streak, best_streak) from chronological outcomes.

    current_streak is positive for a trailing run of wins and negative for a
    trailing run of losses. best_streak is the longest run of wins.
    """
    best = 0
    run = 0
    for correct in outcomes:
        if correct:
            run += 1
            best = max(best, run)
        else:
            run = 0

    current = 0
    if outcomes:
        last = outcomes[-1]
        for correct in reversed(outcomes):
            if correct != last:
                break
            current += 1
        if not last:
            current = -current
    return current, best


def build_standing(
    agent: Agent,
    predictions: Iterable[Prediction],
    starting_bankroll: float = STARTING_BANKROLL,
) -> AgentStanding:
    """Aggregate one agent's settled predictions (any order; sorted here)."""
    settled = sorted(
        (p for p in predictions if is_settled(p)),
        key=lambda p: p.created_at,
    )
    standing = AgentStanding(
        agent_id=agent.id,
        slug=agent.slug,
        display_name=agent.display_name,
        provider=agent.provider,
        color=agent.color,
        bankroll=starting_bankroll,
    )
    if not settled:
        return standing

    total = len(settled)
    correct = sum(1 for p in settled if p.is_correct)
    pnl = sum(p.pnl or 0.0 for p in settled)
    briers = [p.brier_score for p in settled if p.brier_score is not None]

    standing.total = total
    standing.correct = correct
    standing.accuracy = correct / total
    standing.points = sum(p.points_awarded or 0 for p in settled)
    standing.total_pnl = round(pnl, 2)
    standing.bankroll = round(starting_bankroll + pnl, 2)
    standing.avg_brier = round(sum(briers) / len(briers), 4) if briers else None
    standing.avg_confidence = sum(p.confidence for p in settled) / total
    standing.current_streak, standing.best_streak = compute_streaks(
        [bool(p.is_correct) for p in settled]
    )
    return standing


def rank_standings(standings: Iterable[AgentStanding], sort: str = "points") -> list[AgentStanding]:
    """
    Order standings for display.

    points: points desc, then P&L desc. pnl: P&L desc. brier: average Brier
    asc, agents with no Brier data last.
    """
    standings = list(standings)
    if sort == "points":
        return sorted(standings, key=lambda s: (-s.points, -s.total_pnl))
    if sort == "pnl":
        return sorted(standings, key=lambda s: -s.total_pnl)
    if sort == "brier":
        return sorted(
            standings,
            key=lambda s: (s.avg_brier is None, s.avg_brier if s.avg_brier is not None else 0.0),
        )
    raise ValueError(f"Unknown sort {sort!r}; expected one of {', '.join(SORT_KEYS)}")


def compute_head_to_head(predictions: Iterable[Prediction]) -> list[HeadToHead]:
    """Agreement for every ordered pair of agents with at least one shared settled match."""
    picks: dict[str, dict[str, str]] = defaultdict(dict)
    for p in predictions:
        if is_settled(p):
            picks[p.agent_id][p.match_id] = p.predicted_winner

    rows = []
    for agent_id, other_id in permutations(sorted(picks), 2):
        mine, theirs = picks[agent_id], picks[other_id]
        shared = mine.keys() & theirs.keys()
        if not shared:
            continue
        agreed = sum(1 for match_id in shared if mine[match_id] == theirs[match_id])
        rows.append(HeadToHead(agent_id, other_id, shared=len(shared), agreed=agreed))
    return rows


def compute_insights(
    predictions: Sequence[Prediction],
    head_to_head: Iterable[HeadToHead] = (),
    agent_names: Optional[dict[str, str]] = None,
    superseded_count: int = 0,
) -> list[str]:
    """Heuristic personality notes for one agent from its settled predictions."""
    settled = [p for p in predictions if is_settled(p)]
    insights: list[str] = []
    if not settled:
        return insights

    avg_conf = sum(p.confidence for p in settled) / len(settled)
    if avg_conf > CONFIDENT_AVG:
        insights.append("Most confident predictor - averages above 80% confidence")
    elif avg_conf < CAUTIOUS_AVG:
        insights.append("Cautious predictor - tends to hedge with lower confidence")

    team_a_rate = sum(1 for p in settled if p.predicted_winner == Side.TEAM_A.value) / len(settled)
    if team_a_rate > SIDE_BIAS_HIGH:
        insights.append("Tends to favor the first-listed team")
    elif team_a_rate < SIDE_BIAS_LOW:
        insights.append("Tends to favor the second-listed team (underdog lean)")

    high_conf = [p for p in settled if p.confidence >= HIGH_CONFIDENCE]
    if len(high_conf) >= HIGH_CONFIDENCE_MIN_SAMPLE:
        hit_rate = sum(1 for p in high_conf if p.is_correct) / len(high_conf)
        if hit_rate > HIGH_CONFIDENCE_ACCURATE:
            insights.append("Highly accurate when confident (80%+ confidence bets)")
        elif hit_rate < HIGH_CONFIDENCE_OVERCONFIDENT:
            insights.append("Overconfident - high confidence picks often miss")

    agent_id = settled[0].agent_id
    names = agent_names or {}
    eligible = [
        h for h in head_to_head
        if h.agent_id == agent_id and h.shared >= AGREEMENT_MIN_SHARED
    ]
    if eligible:
        closest = max(eligible, key=lambda h: h.agreement_pct)
        furthest = min(eligible, key=lambda h: h.agreement_pct)
        if closest.agreement_pct > AGREES_ABOVE:
            insights.append(f"Often agrees with {names.get(closest.other_agent_id, closest.other_agent_id)}")
        if furthest.agreement_pct < DISAGREES_BELOW:
            insights.append(
                f"Frequently disagrees with {names.get(furthest.other_agent_id, furthest.other_agent_id)}"
            )

    if superseded_count > CHANGED_MIND_MIN:
        insights.append(f"Changed mind {superseded_count} times after XI reveals")

    if len(settled) >= TRACK_RECORD_MIN_SETTLED:
        ordered = sorted(settled, key=lambda p: p.created_at)
        accuracy = sum(1 for p in ordered if p.is_correct) / len(ordered)
        if accuracy > STRONG_TRACK_RECORD:
            insights.append("Strong track record - right more often than not")
        _, best_streak = compute_streaks([bool(p.is_correct) for p in ordered])
        if best_streak >= NOTABLE_STREAK:
            insights.append(f"Best winning streak: {best_streak} in a row")

    return insights


class LeaderboardService:
    """Loads settled predictions and builds rankings and agent profiles."""

    def __init__(self, session: AsyncSession, starting_bankroll: float = STARTING_BANKROLL):
        self.session = session
        self.starting_bankroll = starting_bankroll

    async def _active_agents(self) -> list[Agent]:
        result = await self.session.execute(
            select(Agent).where(Agent.is_active == True).order_by(Agent.id)  # noqa: E712
        )
        return list(result.scalars().all())

    async def _settled_predictions(self) -> list[Prediction]:
        result = await self.session.execute(
            select(Prediction)
            .where(
                and_(
                    Prediction.is_latest == True,  # noqa: E712
                    Prediction.is_correct.is_not(None),
                )
            )
            .order_by(Prediction.created_at)
        )
        return list(result.scalars().all())

    async def compute_leaderboard(self, sort: str = "points") -> list[AgentStanding]:
        """
        Ranked standings for active agents.

        Raises:
            ValueError: unknown sort key.
        """
        if sort not in SORT_KEYS:
            raise ValueError(f"Unknown sort {sort!r}; expected one of {', '.join(SORT_KEYS)}")

        agents = await self._active_agents()
        by_agent: dict[str, list[Prediction]] = defaultdict(list)
        for p in await self._settled_predictions():
            by_agent[p.agent_id].append(p)

        standings = [
            build_standing(agent, by_agent.get(agent.id, []), self.starting_bankroll)
            for agent in agents
        ]
        return rank_standings(standings, sort)

    async def agent_profile(self, id_or_slug: str, recent_limit: int = 10) -> AgentProfile:
        """
        Standing, latest predictions, head-to-head rows and insights for one agent.

        Raises:
            NotFoundError: agent does not exist.
        """
        agent = await get_agent(self.session, id_or_slug)
        settled = await self._settled_predictions()
        mine = [p for p in settled if p.agent_id == agent.id]

        recent_result = await self.session.execute(
            select(Prediction)
            .where(
                and_(
                    Prediction.agent_id == agent.id,
                    Prediction.is_latest == True,  # noqa: E712
                )
            )
            .order_by(Prediction.created_at.desc())
            .limit(recent_limit)
        )
        superseded_result = await self.session.execute(
            select(func.count())
            .select_from(Prediction)
            .where(
                and_(
                    Prediction.agent_id == agent.id,
                    Prediction.is_latest == False,  # noqa: E712
                )
            )
        )
        superseded = superseded_result.scalar_one()

        names_result = await self.session.execute(select(Agent.id, Agent.display_name))
        names = {row[0]: row[1] for row in names_result.all()}

        head_to_head = [h for h in compute_head_to_head(settled) if h.agent_id == agent.id]
        return AgentProfile(
            standing=build_standing(agent, mine, self.starting_bankroll),
            recent_predictions=list(recent_result.scalars().all()),
            head_to_head=head_to_head,
            insights=compute_insights(mine, head_to_head, names, superseded),
        )
