"""Database models using SQLModel."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime column.

    Naive values are taken to be UTC on write. SQLite drops the offset on
    storage, so naive values read back get UTC attached again.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Side(str, Enum):
    TEAM_A = "team_a"
    TEAM_B = "team_b"


class PredictionWindow(str, Enum):
    PRE_MATCH = "pre_match"
    POST_XI = "post_xi"


class MatchStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Agent(SQLModel, table=True):
    """An AI competitor backed by one provider/model."""

    __tablename__ = "agents"

    id: str = Field(primary_key=True, max_length=64)
    display_name: str = Field(max_length=100)
    provider: str = Field(max_length=20, description="anthropic, openai, google, xai")
    model_id: str = Field(max_length=100)
    slug: str = Field(unique=True, index=True, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )


class Match(SQLModel, table=True):
    """A scheduled fixture. Lineups, toss and result are written by ingestion jobs."""

    __tablename__ = "matches"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    match_number: int = Field(index=True)
    stage: str = Field(max_length=50, description="group, super_8, semi, final")
    group_name: Optional[str] = Field(default=None, max_length=20)
    team_a: str = Field(max_length=100)
    team_b: str = Field(max_length=100)
    venue: str = Field(max_length=255)
    scheduled_at: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False, index=True))
    status: str = Field(default=MatchStatus.UPCOMING.value, max_length=20, index=True)

    winner: Optional[str] = Field(default=None, max_length=10, description="team_a or team_b")
    winner_team_name: Optional[str] = Field(default=None, max_length=100)
    result_summary: Optional[str] = Field(default=None)

    playing_xi_a: Optional[list] = Field(default=None, sa_column=Column(JSON))
    playing_xi_b: Optional[list] = Field(default=None, sa_column=Column(JSON))
    xi_announced_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime()))
    toss_winner: Optional[str] = Field(default=None, max_length=100)
    toss_decision: Optional[str] = Field(default=None, max_length=10, description="bat or bowl")

    external_id: Optional[str] = Field(default=None, max_length=50, description="Scores provider id")
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )

    def team_name(self, side: str) -> str:
        return self.team_a if side == Side.TEAM_A.value else self.team_b


class Prediction(SQLModel, table=True):
    """One agent's call on one match. Only the latest row per (match, agent) is scored."""

    __tablename__ = "predictions"
    __table_args__ = (
        Index(
            "uq_predictions_latest",
            "match_id",
            "agent_id",
            unique=True,
            sqlite_where=text("is_latest = 1"),
            postgresql_where=text("is_latest"),
        ),
        Index("ix_predictions_match_window", "match_id", "prediction_window"),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    match_id: str = Field(foreign_key="matches.id", index=True)
    agent_id: str = Field(foreign_key="agents.id", index=True)

    predicted_winner: str = Field(max_length=10, description="team_a or team_b")
    predicted_team_name: str = Field(max_length=100)
    confidence: float = Field(description="Clamped to [0.5, 1.0]")
    reasoning: str = Field(default="")
    prediction_window: str = Field(max_length=20, description="pre_match or post_xi")
    is_latest: bool = Field(default=True)
    search_queries: Optional[list] = Field(default=None, sa_column=Column(JSON))
    search_summary: Optional[str] = Field(default=None)

    # Settlement (all NULL until settled)
    is_correct: Optional[bool] = Field(default=None)
    points_awarded: Optional[int] = Field(default=None)
    pnl: Optional[float] = Field(default=None)
    brier_score: Optional[float] = Field(default=None)

    error_message: Optional[str] = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False, index=True)
    )


class PredictionLog(SQLModel, table=True):
    """Audit row per orchestration outcome. prediction_id is NULL for terminal failures."""

    __tablename__ = "prediction_logs"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    prediction_id: Optional[str] = Field(default=None, foreign_key="predictions.id", index=True)
    match_id: str = Field(index=True)
    agent_id: str = Field(index=True)
    prediction_window: str = Field(max_length=20)

    raw_prompt: str
    raw_response: Optional[str] = Field(default=None)
    tokens_in: Optional[int] = Field(default=None)
    tokens_out: Optional[int] = Field(default=None)
    tokens_used: Optional[int] = Field(default=None)
    latency_ms: Optional[int] = Field(default=None)
    cost_usd: Optional[float] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )
