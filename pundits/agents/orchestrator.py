"""
Prediction orchestrator.

Fans one match out to every requested agent in parallel. Each agent path
(call -> optional retry -> persist) is independent: a failure is recorded
as an audit log row plus an error result and never touches sibling agents.

Supersede happens in exactly one place: store_prediction() marks earlier
rows for the (match, agent) pair not-latest in the same transaction that
inserts the new row. The sweep does not invalidate anything up front.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from pundits.agents.parse import ParseError
from pundits.agents.policy import CallPolicy, classify_error, run_with_policy
from pundits.agents.prompt import PromptPair, build_prediction_prompt
from pundits.agents.providers.base import AgentResult, ProviderAdapter, ProviderError, ProviderName
from pundits.config import Settings, get_settings
from pundits.models import Agent, Match, PredictionWindow, Side
from pundits.repository import (
    PredictionRecord,
    get_active_agents,
    get_match,
    get_predictions_for_window,
    get_upcoming_matches,
    store_failure_log,
    store_prediction,
)
from pundits.telemetry import record_prediction_outcome

logger = logging.getLogger(__name__)


class UnknownProviderError(Exception):
    """Agent references a provider with no registered adapter."""

    pass


@dataclass
class OrchestrationResult:
    agent_id: str
    status: str  # success, error
    prediction_window: str
    prediction_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class SweepResult:
    """Outcome of the scheduled sweep for one match."""

    match_id: str
    prediction_window: str
    results: list[OrchestrationResult] = field(default_factory=list)
    skipped: int = 0

    @property
    def predictions_created(self) -> int:
        return sum(1 for r in self.results if r.ok)


def resolve_prediction_window(match: Match) -> str:
    """post_xi once both playing XIs are announced, otherwise pre_match."""
    if match.playing_xi_a and match.playing_xi_b:
        return PredictionWindow.POST_XI.value
    return PredictionWindow.PRE_MATCH.value


def _error_message(error: BaseException) -> str:
    """Short message safe to persist and return to callers."""
    if not isinstance(error, (ProviderError, ParseError, UnknownProviderError)):
        return "internal error"
    message = str(error).strip() or type(error).__name__
    return message[:500]


class PredictionOrchestrator:
    """Runs agents for a match and persists their predictions."""

    def __init__(
        self,
        providers: Mapping[ProviderName, ProviderAdapter],
        session_factory: sessionmaker,
        policy: Optional[CallPolicy] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.providers = dict(providers)
        self.session_factory = session_factory
        self.policy = policy or CallPolicy.from_settings(self.settings)

    def _adapter_for(self, agent: Agent) -> ProviderAdapter:
        try:
            provider = ProviderName(agent.provider)
        except ValueError:
            raise UnknownProviderError(f"No adapter registered for provider: {agent.provider}")
        adapter = self.providers.get(provider)
        if adapter is None:
            raise UnknownProviderError(f"No adapter registered for provider: {agent.provider}")
        return adapter

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def orchestrate(
        self, match: Match, agents: Sequence[Agent]
    ) -> list[OrchestrationResult]:
        """Call every agent concurrently for one match. One result per agent, in order."""
        prompt = build_prediction_prompt(match, self.settings.TOURNAMENT_NAME)
        window = resolve_prediction_window(match)

        logger.info(
            f"[ORCHESTRATOR] match={match.id} ({match.team_a} vs {match.team_b}) "
            f"window={window} agents={len(agents)}"
        )

        outcomes = await asyncio.gather(
            *(self._run_agent(match, agent, prompt, window) for agent in agents),
            return_exceptions=True,
        )

        results = []
        for agent, outcome in zip(agents, outcomes):
            if isinstance(outcome, OrchestrationResult):
                results.append(outcome)
            else:
                logger.error(f"[ORCHESTRATOR] agent={agent.id} path aborted: {outcome!r}")
                results.append(
                    OrchestrationResult(
                        agent_id=agent.id,
                        status="error",
                        prediction_window=window,
                        error=_error_message(outcome),
                        error_code="unknown",
                    )
                )

        succeeded = sum(1 for r in results if r.ok)
        logger.info(
            f"[ORCHESTRATOR] match={match.id} done: {succeeded} ok, "
            f"{len(results) - succeeded} failed"
        )
        return results

    async def call_agent(self, match: Match, agent: Agent) -> OrchestrationResult:
        """Single (match, agent) variant used by on-demand triggers."""
        prompt = build_prediction_prompt(match, self.settings.TOURNAMENT_NAME)
        window = resolve_prediction_window(match)
        return await self._run_agent(match, agent, prompt, window)

    async def orchestrate_match(
        self, match_id: str, agent_ids: Optional[Iterable[str]] = None
    ) -> list[OrchestrationResult]:
        """
        Load the match and active agents, then orchestrate.

        Raises:
            NotFoundError: match does not exist.
        """
        # Read session is closed before fan-out so it holds no locks during writes
        async with self.session_factory() as session:
            match = await get_match(session, match_id)
            agents = await get_active_agents(session, agent_ids)
        if not agents:
            logger.info(f"[ORCHESTRATOR] match={match_id}: no active agents selected")
            return []
        return await self.orchestrate(match, agents)

    async def agents_needing_prediction(
        self, match: Match, agents: Sequence[Agent]
    ) -> list[Agent]:
        """Agents without a prediction for the match's current window."""
        window = resolve_prediction_window(match)
        async with self.session_factory() as session:
            existing = await get_predictions_for_window(session, match.id, window)
        done = {p.agent_id for p in existing}
        return [agent for agent in agents if agent.id not in done]

    async def run_prediction_sweep(self, now: Optional[datetime] = None) -> list[SweepResult]:
        """
        Predict every upcoming match inside the lookahead window.

        Idempotent per window: agents that already predicted the current
        window of a match are skipped, so re-running the sweep only fills gaps
        and a lineup announcement triggers exactly one post_xi round.
        """
        async with self.session_factory() as session:
            matches = await get_upcoming_matches(
                session, now=now, hours=self.settings.PREDICTION_LOOKAHEAD_HOURS
            )
            agents = await get_active_agents(session)

        sweep = []
        for match in matches:
            window = resolve_prediction_window(match)
            pending = await self.agents_needing_prediction(match, agents)
            entry = SweepResult(
                match_id=match.id,
                prediction_window=window,
                skipped=len(agents) - len(pending),
            )
            if pending:
                entry.results = await self.orchestrate(match, pending)
            sweep.append(entry)

        logger.info(
            f"[SWEEP] matches={len(matches)} created="
            f"{sum(s.predictions_created for s in sweep)} "
            f"skipped={sum(s.skipped for s in sweep)}"
        )
        return sweep

    # =========================================================================
    # PER-AGENT PATH
    # =========================================================================

    async def _run_agent(
        self, match: Match, agent: Agent, prompt: PromptPair, window: str
    ) -> OrchestrationResult:
        try:
            adapter = self._adapter_for(agent)
        except UnknownProviderError as e:
            return await self._store_failure(match, agent, prompt, window, e, "unknown_provider")

        try:
            result = await run_with_policy(
                agent.id,
                lambda: adapter.call(prompt.system, prompt.user, match.team_a, match.team_b),
                self.policy,
                provider=agent.provider,
            )
        except Exception as e:
            error_code = classify_error(e)
            if error_code == "unknown":
                logger.exception(f"[ORCHESTRATOR] agent={agent.id} unexpected error")
            return await self._store_failure(match, agent, prompt, window, e, error_code)

        try:
            return await self._store_success(match, agent, prompt, window, result)
        except Exception as e:
            logger.exception(f"[ORCHESTRATOR] agent={agent.id} failed to persist prediction")
            return await self._store_failure(match, agent, prompt, window, e, "unknown")

    async def _store_success(
        self,
        match: Match,
        agent: Agent,
        prompt: PromptPair,
        window: str,
        result: AgentResult,
    ) -> OrchestrationResult:
        winner = result.prediction.winner
        side = Side.TEAM_A.value if winner == match.team_a else Side.TEAM_B.value

        record = PredictionRecord(
            match_id=match.id,
            agent_id=agent.id,
            predicted_winner=side,
            predicted_team_name=winner,
            confidence=result.prediction.confidence,
            reasoning=result.prediction.reasoning,
            prediction_window=window,
            raw_prompt=f"{prompt.system}\n\n{prompt.user}",
            raw_response=result.raw_response,
            search_queries=result.search_queries,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
            tokens_used=result.tokens_used,
            latency_ms=result.latency_ms,
            cost_usd=result.cost_usd,
        )
        async with self.session_factory() as session:
            prediction_id = await store_prediction(session, record)

        logger.info(
            f"[ORCHESTRATOR] agent={agent.id} match={match.id} -> {winner} "
            f"@ {result.prediction.confidence:.2f} ({window})"
        )
        record_prediction_outcome(agent.provider, "success")
        return OrchestrationResult(
            agent_id=agent.id,
            status="success",
            prediction_window=window,
            prediction_id=prediction_id,
        )

    async def _store_failure(
        self,
        match: Match,
        agent: Agent,
        prompt: PromptPair,
        window: str,
        error: BaseException,
        error_code: str,
    ) -> OrchestrationResult:
        message = _error_message(error)
        logger.warning(
            f"[ORCHESTRATOR] agent={agent.id} match={match.id} failed ({error_code}): {message[:200]}"
        )
        try:
            async with self.session_factory() as session:
                await store_failure_log(
                    session,
                    match_id=match.id,
                    agent_id=agent.id,
                    prediction_window=window,
                    raw_prompt=f"{prompt.system}\n\n{prompt.user}",
                    error_message=f"{error_code}: {message}",
                )
        except Exception as log_error:
            logger.error(f"[ORCHESTRATOR] could not write failure log for {agent.id}: {log_error}")

        record_prediction_outcome(agent.provider, "error", error_code)
        return OrchestrationResult(
            agent_id=agent.id,
            status="error",
            prediction_window=window,
            error=message,
            error_code=error_code,
        )
