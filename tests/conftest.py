"""Shared fixtures: temp-file SQLite database, seeded rows and fake providers."""

import asyncio
from datetime import datetime, timedelta
from typing import Optional, Union

import pytest
import pytest_asyncio

from pundits.agents.providers.base import ProviderAdapter, ProviderName, ProviderResponse
from pundits.database import create_engine, create_session_factory, init_db
from pundits.models import Agent, Match, Prediction, utcnow
from pundits.roster import DEFAULT_AGENTS

INDIA_XI = [
    "Rohit Sharma", "Yashasvi Jaiswal", "Virat Kohli", "Suryakumar Yadav",
    "Rishabh Pant", "Hardik Pandya", "Ravindra Jadeja", "Axar Patel",
    "Kuldeep Yadav", "Jasprit Bumrah", "Arshdeep Singh",
]
USA_XI = [
    "Monank Patel", "Steven Taylor", "Andries Gous", "Aaron Jones",
    "Nitish Kumar", "Corey Anderson", "Harmeet Singh", "Shadley van Schalkwyk",
    "Jasdeep Singh", "Saurabh Netravalkar", "Ali Khan",
]


class FakeAdapter(ProviderAdapter):
    """Adapter that answers from a script instead of the network."""

    def __init__(
        self,
        provider: ProviderName,
        answers: list[Union[str, Exception]],
        delay: float = 0.0,
    ):
        super().__init__(api_key="test-key", model=f"fake-{provider.value}", base_url="http://fake")
        self.provider = provider
        self.answers = list(answers)
        self.delay = delay
        self.calls = 0

    async def _request(self, system: str, user: str) -> ProviderResponse:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        answer = self.answers[min(self.calls, len(self.answers)) - 1]
        if isinstance(answer, Exception):
            raise answer
        return ProviderResponse(
            text=answer,
            search_queries=["india vs usa pitch report"],
            tokens_in=1200,
            tokens_out=300,
        )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'pundits_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def agents(session_factory) -> list[Agent]:
    """The four default agents, all active."""
    async with session_factory() as session:
        rows = [
            Agent(
                id=c.id,
                display_name=c.display_name,
                provider=c.provider,
                model_id=c.model_id,
                slug=c.slug,
                color=c.color,
            )
            for c in DEFAULT_AGENTS
        ]
        session.add_all(rows)
        await session.commit()
    return rows


def build_match(
    match_number: int = 7,
    team_a: str = "India",
    team_b: str = "USA",
    scheduled_at: Optional[datetime] = None,
    with_xi: bool = False,
    **kwargs,
) -> Match:
    match = Match(
        match_number=match_number,
        stage="group",
        group_name="A",
        team_a=team_a,
        team_b=team_b,
        venue="Nassau County International Cricket Stadium, New York",
        scheduled_at=scheduled_at or utcnow() + timedelta(hours=12),
        **kwargs,
    )
    if with_xi:
        match.playing_xi_a = list(INDIA_XI)
        match.playing_xi_b = list(USA_XI)
        match.toss_winner = team_a
        match.toss_decision = "bat"
    return match


@pytest_asyncio.fixture
async def match(session_factory) -> Match:
    async with session_factory() as session:
        row = build_match()
        session.add(row)
        await session.commit()
    return row


def build_prediction(
    match_id: str,
    agent_id: str,
    predicted_winner: str = "team_a",
    confidence: float = 0.7,
    created_at: Optional[datetime] = None,
    **kwargs,
) -> Prediction:
    return Prediction(
        match_id=match_id,
        agent_id=agent_id,
        predicted_winner=predicted_winner,
        predicted_team_name="India" if predicted_winner == "team_a" else "USA",
        confidence=confidence,
        reasoning="Form and conditions favour this side.",
        prediction_window=kwargs.pop("prediction_window", "pre_match"),
        is_latest=kwargs.pop("is_latest", True),
        created_at=created_at or utcnow(),
        **kwargs,
    )
