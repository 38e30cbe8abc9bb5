"""Tests for leaderboard aggregation, streaks, head-to-head and insights."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import build_match, build_prediction

from pundits.models import Agent
from pundits.repository import NotFoundError
from pundits.scoring.leaderboard import (
    AgentStanding,
    HeadToHead,
    LeaderboardService,
    build_standing,
    compute_head_to_head,
    compute_insights,
    compute_streaks,
    rank_standings,
)
from pundits.scoring.metrics import calculate_brier_score, calculate_pnl

T0 = datetime(2026, 2, 8, 10, 0, tzinfo=timezone.utc)


def settled(match_id, agent_id, side, confidence, correct, minutes=0, **kwargs):
    """A settled latest prediction with consistent scoring fields."""
    return build_prediction(
        match_id,
        agent_id,
        predicted_winner=side,
        confidence=confidence,
        created_at=T0 + timedelta(minutes=minutes),
        is_correct=correct,
        points_awarded=1 if correct else 0,
        pnl=calculate_pnl(confidence, correct),
        brier_score=calculate_brier_score(confidence, correct),
        **kwargs,
    )


def agent(agent_id="claude-opus", slug="claude"):
    return Agent(
        id=agent_id, display_name=agent_id.title(), provider="anthropic",
        model_id="m", slug=slug, color="#E87040",
    )


def standing(agent_id, points=0, pnl=0.0, brier=None):
    return AgentStanding(
        agent_id=agent_id, slug=agent_id, display_name=agent_id, provider="x",
        color=None, points=points, total_pnl=pnl, avg_brier=brier,
    )


class TestComputeStreaks:
    """Current and best streaks."""

    def test_trailing_wins(self):
        assert compute_streaks([True, True, False, True, True, True]) == (3, 3)

    def test_trailing_losses_negative(self):
        assert compute_streaks([True, False, False]) == (-2, 1)

    def test_single_loss_after_run(self):
        assert compute_streaks([True, True, True, True, False]) == (-1, 4)

    def test_empty(self):
        assert compute_streaks([]) == (0, 0)

    def test_all_losses(self):
        assert compute_streaks([False, False, False]) == (-3, 0)


class TestBuildStanding:
    """Per-agent totals."""

    def test_totals(self):
        predictions = [
            settled("m1", "claude-opus", "team_a", 0.6, True, minutes=0),
            settled("m2", "claude-opus", "team_b", 0.8, False, minutes=10),
            settled("m3", "claude-opus", "team_a", 0.5, True, minutes=20),
        ]
        result = build_standing(agent(), predictions)

        assert result.total == 3
        assert result.correct == 2
        assert abs(result.accuracy - 2 / 3) < 1e-10
        assert result.points == 2
        assert result.total_pnl == 66.67
        assert result.bankroll == 10066.67
        assert result.avg_brier == round((0.16 + 0.64 + 0.25) / 3, 4)
        assert result.current_streak == 1
        assert result.best_streak == 1

    def test_order_is_chronological_not_input_order(self):
        predictions = [
            settled("m2", "claude-opus", "team_a", 0.7, False, minutes=30),
            settled("m1", "claude-opus", "team_a", 0.7, True, minutes=0),
        ]
        assert build_standing(agent(), predictions).current_streak == -1

    def test_unsettled_and_superseded_ignored(self):
        predictions = [
            settled("m1", "claude-opus", "team_a", 0.7, True),
            settled("m2", "claude-opus", "team_a", 0.7, False, is_latest=False),
            build_prediction("m3", "claude-opus"),
        ]
        result = build_standing(agent(), predictions)
        assert result.total == 1
        assert result.correct == 1

    def test_no_data(self):
        result = build_standing(agent(), [])
        assert result.total == 0
        assert result.accuracy == 0.0
        assert result.avg_brier is None
        assert result.bankroll == 10000


class TestRankStandings:
    """Sort orders."""

    def test_points_then_pnl(self):
        ranked = rank_standings([
            standing("a", points=3, pnl=-50.0),
            standing("b", points=4, pnl=-200.0),
            standing("c", points=3, pnl=20.0),
        ])
        assert [s.agent_id for s in ranked] == ["b", "c", "a"]

    def test_pnl(self):
        ranked = rank_standings(
            [standing("a", pnl=5.0), standing("b", pnl=80.0), standing("c", pnl=-10.0)], "pnl"
        )
        assert [s.agent_id for s in ranked] == ["b", "a", "c"]

    def test_brier_ascending_missing_last(self):
        ranked = rank_standings(
            [standing("a", brier=0.3), standing("b"), standing("c", brier=0.12)], "brier"
        )
        assert [s.agent_id for s in ranked] == ["c", "a", "b"]

    def test_unknown_sort(self):
        with pytest.raises(ValueError):
            rank_standings([], "accuracy")


class TestHeadToHead:
    """Pairwise agreement over shared settled matches."""

    def test_agreement(self):
        predictions = [
            settled("m1", "a", "team_a", 0.7, True),
            settled("m1", "b", "team_a", 0.7, True),
            settled("m2", "a", "team_a", 0.7, True),
            settled("m2", "b", "team_b", 0.7, False),
            settled("m3", "a", "team_b", 0.7, True),
            # Unsettled: not shared
            build_prediction("m4", "b", "team_b"),
        ]
        rows = {(h.agent_id, h.other_agent_id): h for h in compute_head_to_head(predictions)}

        assert set(rows) == {("a", "b"), ("b", "a")}
        assert rows[("a", "b")].shared == 2
        assert rows[("a", "b")].agreed == 1
        assert rows[("a", "b")].agreement_pct == 0.5
        assert rows[("b", "a")].agreement_pct == 0.5

    def test_no_overlap(self):
        predictions = [settled("m1", "a", "team_a", 0.7, True), settled("m2", "b", "team_a", 0.7, True)]
        assert compute_head_to_head(predictions) == []


class TestComputeInsights:
    """Heuristic personality notes."""

    def test_confident_and_accurate(self):
        predictions = [
            settled(f"m{i}", "a", "team_a", 0.85, True, minutes=i) for i in range(4)
        ]
        insights = compute_insights(predictions)
        assert "Most confident predictor - averages above 80% confidence" in insights
        assert "Tends to favor the first-listed team" in insights
        assert "Highly accurate when confident (80%+ confidence bets)" in insights

    def test_cautious_underdog(self):
        predictions = [settled(f"m{i}", "a", "team_b", 0.55, i % 2 == 0) for i in range(4)]
        insights = compute_insights(predictions)
        assert "Cautious predictor - tends to hedge with lower confidence" in insights
        assert "Tends to favor the second-listed team (underdog lean)" in insights

    def test_overconfident(self):
        predictions = [
            settled("m1", "a", "team_a", 0.9, False),
            settled("m2", "a", "team_b", 0.9, False),
            settled("m3", "a", "team_a", 0.85, True),
            settled("m4", "a", "team_b", 0.8, False),
        ]
        assert "Overconfident - high confidence picks often miss" in compute_insights(predictions)

    def test_high_confidence_needs_three_samples(self):
        predictions = [
            settled("m1", "a", "team_a", 0.9, False),
            settled("m2", "a", "team_b", 0.9, False),
            settled("m3", "a", "team_a", 0.6, True),
        ]
        insights = compute_insights(predictions)
        assert not any("confident (80%" in i or "Overconfident" in i for i in insights)

    def test_agreement_partners(self):
        predictions = [settled(f"m{i}", "a", "team_a", 0.7, True) for i in range(4)]
        head_to_head = [
            HeadToHead("a", "b", shared=4, agreed=4),
            HeadToHead("a", "c", shared=4, agreed=0),
            HeadToHead("a", "d", shared=2, agreed=0),
        ]
        insights = compute_insights(predictions, head_to_head, {"b": "GPT-5.2", "c": "Grok 4"})
        assert "Often agrees with GPT-5.2" in insights
        assert "Frequently disagrees with Grok 4" in insights

    def test_changed_mind(self):
        predictions = [settled("m1", "a", "team_a", 0.7, True)]
        assert "Changed mind 3 times after XI reveals" in compute_insights(predictions, superseded_count=3)
        assert not any("Changed mind" in i for i in compute_insights(predictions, superseded_count=2))

    def test_track_record_and_best_streak(self):
        outcomes = [True, True, True, False, True]
        predictions = [
            settled(f"m{i}", "a", "team_a", 0.7, correct, minutes=i)
            for i, correct in enumerate(outcomes)
        ]
        insights = compute_insights(predictions)
        assert "Strong track record - right more often than not" in insights
        assert "Best winning streak: 3 in a row" in insights

    def test_track_record_needs_three_settled(self):
        predictions = [settled(f"m{i}", "a", "team_a", 0.7, True, minutes=i) for i in range(2)]
        insights = compute_insights(predictions)
        assert not any("track record" in i or "winning streak" in i for i in insights)

    def test_streak_counted_in_time_order(self):
        # Input order would give a run of 3, chronological order gives 2
        predictions = [
            settled("m0", "a", "team_a", 0.7, True, minutes=0),
            settled("m3", "a", "team_a", 0.7, True, minutes=3),
            settled("m1", "a", "team_a", 0.7, True, minutes=1),
            settled("m2", "a", "team_a", 0.7, False, minutes=2),
        ]
        insights = compute_insights(predictions)
        assert "Strong track record - right more often than not" in insights
        assert not any("winning streak" in i for i in insights)

    def test_no_settled_predictions(self):
        assert compute_insights([build_prediction("m1", "a")]) == []


class TestLeaderboardService:
    """Database-backed leaderboard and profile."""

    @pytest.mark.asyncio
    async def test_compute_leaderboard(self, session_factory, agents):
        async with session_factory() as session:
            m1, m2 = build_match(match_number=1), build_match(match_number=2)
            session.add_all([m1, m2])
            await session.commit()
            session.add_all([
                settled(m1.id, "claude-opus", "team_a", 0.6, True, minutes=0),
                settled(m2.id, "claude-opus", "team_a", 0.6, True, minutes=5),
                settled(m1.id, "gpt-5", "team_a", 0.9, True, minutes=0),
                settled(m2.id, "gpt-5", "team_a", 0.9, True, minutes=5),
                settled(m1.id, "grok", "team_b", 0.7, False, minutes=0),
            ])
            await session.commit()

            by_points = await LeaderboardService(session).compute_leaderboard("points")
            by_brier = await LeaderboardService(session).compute_leaderboard("brier")

        assert [s.agent_id for s in by_points] == ["claude-opus", "gpt-5", "gemini-3", "grok"]
        assert by_points[0].total_pnl == 133.34
        assert by_points[0].current_streak == 2
        assert by_points[3].current_streak == -1
        assert by_points[2].total == 0

        assert by_brier[0].agent_id == "gpt-5"
        assert by_brier[-1].agent_id == "gemini-3"

    @pytest.mark.asyncio
    async def test_agent_profile(self, session_factory, agents):
        async with session_factory() as session:
            matches = [build_match(match_number=i) for i in range(1, 5)]
            session.add_all(matches)
            await session.commit()
            for i, m in enumerate(matches):
                session.add(settled(m.id, "claude-opus", "team_a", 0.85, True, minutes=i))
                session.add(settled(m.id, "gpt-5", "team_a", 0.7, True, minutes=i))
            session.add(build_prediction(matches[0].id, "claude-opus", is_latest=False))
            await session.commit()

            profile = await LeaderboardService(session).agent_profile("claude")

        assert profile.standing.agent_id == "claude-opus"
        assert profile.standing.total == 4
        assert len(profile.recent_predictions) == 4
        assert [(h.other_agent_id, h.shared, h.agreed) for h in profile.head_to_head] == [("gpt-5", 4, 4)]
        assert "Often agrees with GPT-5.2" in profile.insights
        assert "Highly accurate when confident (80%+ confidence bets)" in profile.insights

    @pytest.mark.asyncio
    async def test_unknown_agent(self, session):
        with pytest.raises(NotFoundError):
            await LeaderboardService(session).agent_profile("nobody")

    @pytest.mark.asyncio
    async def test_unknown_sort(self, session):
        with pytest.raises(ValueError):
            await LeaderboardService(session).compute_leaderboard("vibes")
