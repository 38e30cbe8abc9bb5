"""Scoring: per-prediction arithmetic, settlement and leaderboard aggregation."""
