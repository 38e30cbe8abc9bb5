"""
Command-line entry points for scheduled jobs and manual operations.

Usage:
    pundits init-db
    pundits predict <match_id> [--agent grok --agent gpt-5]
    pundits sweep
    pundits settle <match_id> team_a [--summary "India won by 7 wickets"]
    pundits abandon <match_id>
    pundits leaderboard [--sort points|pnl|brier]
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pundits import configure_logging
from pundits.agents.orchestrator import PredictionOrchestrator
from pundits.agents.providers import build_provider_registry, close_providers
from pundits.config import get_settings
from pundits.database import close_db, get_session_factory, get_session_with_retry, init_db
from pundits.repository import NotFoundError
from pundits.roster import sync_agents
from pundits.scoring.leaderboard import SORT_KEYS, LeaderboardService
from pundits.scoring.settlement import SettlementEngine

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pundits", description="AI match prediction jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and sync the default agent roster")

    predict = sub.add_parser("predict", help="Run agents for one match")
    predict.add_argument("match_id")
    predict.add_argument("--agent", action="append", dest="agents", default=None,
                         help="Agent id (repeatable). Default: all active agents")

    sub.add_parser("sweep", help="Predict upcoming matches that lack a prediction for their window")

    settle = sub.add_parser("settle", help="Record a result and settle predictions")
    settle.add_argument("match_id")
    settle.add_argument("winner", choices=["team_a", "team_b"])
    settle.add_argument("--summary", default=None)

    abandon = sub.add_parser("abandon", help="Mark a match abandoned and void its predictions")
    abandon.add_argument("match_id")
    abandon.add_argument("--summary", default=None)

    board = sub.add_parser("leaderboard", help="Print the leaderboard")
    board.add_argument("--sort", choices=SORT_KEYS, default="points")

    return parser


async def _predict(args, settings) -> None:
    registry = build_provider_registry(settings)
    orchestrator = PredictionOrchestrator(registry, get_session_factory(), settings=settings)
    try:
        if args.command == "sweep":
            for entry in await orchestrator.run_prediction_sweep():
                print(
                    f"{entry.match_id} [{entry.prediction_window}] "
                    f"created={entry.predictions_created} skipped={entry.skipped}"
                )
        else:
            for result in await orchestrator.orchestrate_match(args.match_id, args.agents):
                detail = result.prediction_id if result.ok else f"{result.error_code}: {result.error}"
                print(f"{result.agent_id:<12} {result.status:<8} {detail}")
    finally:
        await close_providers(registry)


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    try:
        if args.command == "init-db":
            await init_db()
            async with get_session_with_retry() as session:
                count = await sync_agents(session)
            print(f"Database ready, {count} agents synced")

        elif args.command in ("predict", "sweep"):
            await _predict(args, settings)

        elif args.command in ("settle", "abandon"):
            async with get_session_with_retry() as session:
                engine = SettlementEngine(session, stake=settings.SETTLEMENT_STAKE)
                if args.command == "settle":
                    count = await engine.record_result(
                        args.match_id, args.winner, result_summary=args.summary
                    )
                else:
                    count = await engine.record_abandoned(args.match_id, args.summary)
            print(f"{count} predictions updated")

        elif args.command == "leaderboard":
            async with get_session_with_retry() as session:
                service = LeaderboardService(session, settings.STARTING_BANKROLL)
                standings = await service.compute_leaderboard(args.sort)
            for rank, s in enumerate(standings, start=1):
                brier = f"{s.avg_brier:.4f}" if s.avg_brier is not None else "-"
                print(
                    f"{rank:>2}. {s.display_name:<18} pts={s.points:<3} "
                    f"acc={s.accuracy:.0%} pnl={s.total_pnl:+.2f} brier={brier} "
                    f"streak={s.current_streak:+d}"
                )
    except NotFoundError as e:
        logger.error(str(e))
        return 1
    finally:
        await close_db()

    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
