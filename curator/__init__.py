"""Curator - scheduled news and video ingestion with moderation and retention."""

__version__ = "0.1.0"
