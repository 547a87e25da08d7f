"""Trending signal collaborator."""

from curator.trending.service import StoreTrendingSignal, Trend, TrendingSignal

__all__ = ["StoreTrendingSignal", "Trend", "TrendingSignal"]
