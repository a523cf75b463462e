"""Object key layout for exported shards, manifests and config copies."""

from datetime import datetime, timezone
from typing import Optional

from .exceptions import ConfigError


def reference_timestamp(now: Optional[datetime] = None) -> str:
    """
    Compute the run timestamp shared by every row and object key.

    Times are rounded down to the hour and rendered as RFC 3339 in UTC,
    e.g. ``2024-01-01T10:00:00Z``.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    hour = now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
    return hour.strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(timestamp: str) -> datetime:
    """Parse an RFC 3339 run timestamp."""
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError as e:
        raise ConfigError(f"Invalid timestamp format: {timestamp}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_filename(
    timestamp: str,
    name: str,
    file_index: Optional[int],
    extension: str,
    prefix: str = "mongo",
) -> str:
    """
    Build the object key for one exported artifact.

    Keys are partitioned by the run date so downstream loaders can prune:
    ``<prefix>/<name>/_data_timestamp_year=YYYY/_data_timestamp_month=MM/
    _data_timestamp_day=DD/mongo_<name>_<timestamp>[_<index>]<extension>``.

    Args:
        timestamp: Run timestamp (RFC 3339)
        name: Destination table name (or config name for config copies)
        file_index: Shard index, or None for per-run objects like the manifest
        extension: File extension including the leading dot
        prefix: Leading key segment
    """
    t = parse_timestamp(timestamp)
    suffix = f"_{file_index}" if file_index is not None else ""
    directory = (
        f"{name}/_data_timestamp_year={t.year:02d}/"
        f"_data_timestamp_month={t.month:02d}/_data_timestamp_day={t.day:02d}/"
    )
    if prefix:
        directory = f"{prefix.strip('/')}/{directory}"
    return f"{directory}mongo_{name}_{timestamp}{suffix}{extension}"


def shard_filename(timestamp: str, dest: str, index: int, prefix: str = "mongo") -> str:
    return format_filename(timestamp, dest, index, ".json.gz", prefix)


def manifest_filename(timestamp: str, dest: str, prefix: str = "mongo") -> str:
    return format_filename(timestamp, dest, None, ".manifest", prefix)


def config_filename(timestamp: str, config_name: str, prefix: str = "mongo") -> str:
    return format_filename(timestamp, config_name, None, ".yml", prefix)
