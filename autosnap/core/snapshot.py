"""
Snapshot metadata as reported by the snapshot store.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..common.errors import UnsafeDestroyError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now():
    return datetime.now(timezone.utc).replace(microsecond=0)


def ensure_snapshot_name(name, volume=None):
    """
    Raises UnsafeDestroyError unless `name` is structurally a snapshot
    (`volume@label`), optionally of the given volume.

    Destroy in ZFS takes any dataset, so this guard runs before every
    destructive call regardless of what the store itself checks.
    """
    owner, sep, label = name.partition('@')
    if not sep or not owner or not label or '@' in label:
        raise UnsafeDestroyError(f"Tried to destroy something that is not a snapshot: {name!r}")
    if volume is not None and owner != volume:
        raise UnsafeDestroyError(
            f"Snapshot {name!r} does not belong to volume {volume!r}"
        )


@dataclass(frozen=True)
class Snapshot:
    """One immutable point-in-time copy of a volume."""

    name: str
    created: datetime
    used: int = 0

    @property
    def volume(self):
        return self.name.split('@', 1)[0]

    def sort_key(self):
        return int(self.created.timestamp())

    def __lt__(self, other):
        return self.sort_key() < other.sort_key()

    def elapsed(self, now=None):
        """Time since creation, never negative"""
        now = now or utc_now()
        return max(now - self.created, timedelta(0))

    def __str__(self):
        return self.name


def oldest_first(snapshots):
    return sorted(snapshots, key=Snapshot.sort_key)


def newest_first(snapshots):
    return sorted(snapshots, key=Snapshot.sort_key, reverse=True)
