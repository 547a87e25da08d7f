"""
Next-delay policies.

Pure functions of the clock, the trending flag and config, so they can
be tested without timers.
"""

import logging
import random
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from curator.feed_settings import FeedSettings
from curator.scheduler.config import SchedulerConfig

logger = logging.getLogger(__name__)


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name, falling back to UTC."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return timezone.utc


def is_daytime(hour: int, config: SchedulerConfig) -> bool:
    """Whether a local hour falls in the daytime window (both ends inclusive)."""
    start, end = config.daytime_start_hour, config.daytime_end_hour
    if start <= end:
        return start <= hour <= end
    # Window wraps past midnight
    return hour >= start or hour <= end


def adaptive_video_delay(
    now: datetime,
    has_trend: bool,
    config: SchedulerConfig | None = None,
    rng: random.Random | None = None,
    tz: tzinfo | None = None,
) -> float:
    """
    Seconds until the next video cycle.

    An active trend gives a random delay in [trending_min, trending_max)
    minutes; otherwise the daytime window gives the daytime delay and
    night hours the night delay.

    Args:
        now: Current time (aware; naive values are taken as UTC)
        has_trend: Whether the trending signal reports an active trend
        config: Interval settings
        rng: Random source for the trending jitter
        tz: Timezone the daytime window is defined in
    """
    config = config or SchedulerConfig()
    if has_trend:
        rng = rng or random
        low, high = config.trending_min_minutes, config.trending_max_minutes
        return (low + rng.random() * (high - low)) * 60.0

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz) if tz is not None else now
    if is_daytime(local.hour, config):
        return config.daytime_delay_minutes * 60.0
    return config.night_delay_minutes * 60.0


def fixed_news_delay(settings: FeedSettings) -> float:
    """Seconds until the next news cycle: the settings' fetch interval."""
    return settings.fetch_interval_minutes * 60.0
