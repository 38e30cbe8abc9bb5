"""Prediction prompt shared by every agent for one match."""

from dataclasses import dataclass
from typing import Optional

from pundits.config import get_settings
from pundits.models import Match


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


RESPONSE_FORMAT = (
    '{ "winner": "Exact Team Name", "confidence": 0.XX, '
    '"reasoning": "Your 2-3 sentence analysis" }'
)


def _format_xi(players) -> str:
    if isinstance(players, (list, tuple)):
        return ", ".join(str(p) for p in players)
    return str(players)


def build_prediction_prompt(match: Match, tournament: Optional[str] = None) -> PromptPair:
    """Build the system/user prompt from current match state (lineups and toss if known)."""
    tournament = tournament or get_settings().TOURNAMENT_NAME

    system = " ".join([
        f"You are an elite cricket analyst competing against other AI models to predict {tournament} match winners.",
        "Your accuracy, confidence calibration, and reasoning are being tracked on a public leaderboard.",
    ])

    scheduled = match.scheduled_at.isoformat() if match.scheduled_at else "TBD"
    lines = [
        f"MATCH: {match.team_a} vs {match.team_b}",
        f"Match #{match.match_number} | {match.stage} | {match.venue} | {scheduled}",
    ]

    if match.playing_xi_a:
        lines.append(f"\n{match.team_a} Playing XI: {_format_xi(match.playing_xi_a)}")
    if match.playing_xi_b:
        lines.append(f"{match.team_b} Playing XI: {_format_xi(match.playing_xi_b)}")
    if match.toss_winner and match.toss_decision:
        lines.append(f"\nToss: {match.toss_winner} won and chose to {match.toss_decision}")

    lines.extend([
        "",
        "INSTRUCTIONS:",
        "1. Use web search to research the latest team news, player form, pitch conditions, weather, and head-to-head stats",
        "2. Analyze all factors and predict the winner",
        "3. Give your confidence level (0.50 = coin flip, 1.00 = certain)",
        "4. Provide a concise 2-3 sentence explanation",
        "",
        "IMPORTANT: Respond ONLY with valid JSON:",
        RESPONSE_FORMAT,
    ])

    return PromptPair(system=system, user="\n".join(lines))
