"""
Snapshot Store contract consumed by the scheduling loop.
"""

from abc import ABC, abstractmethod

from ..core.snapshot import newest_first


class Volume:
    """A configured volume: identifier, retention policy, snapshots newest-first."""

    def __init__(self, name, policy, snapshots=()):
        self.name = name
        self.policy = policy
        self.snapshots = tuple(newest_first(snapshots))

    def __repr__(self):
        return f"Volume({self.name!r}, {len(self.snapshots)} snapshots)"

    def until_next_snapshot(self, now=None):
        return self.policy.next_snapshot_due(self.snapshots, now)

    def judge(self):
        return self.policy.judge(self.snapshots)


class SnapshotStore(ABC):
    """List / create / destroy, plus the policy bookkeeping the admin CLI needs."""

    #: True when commands run on this machine (privilege checks apply)
    local = True

    @abstractmethod
    def list_volumes(self):
        """Returns the configured volumes, each with its snapshots newest-first."""

    @abstractmethod
    def create_snapshot(self, volume):
        """Takes a snapshot of `volume` and returns its Snapshot metadata."""

    @abstractmethod
    def destroy_snapshot(self, snapshot):
        """Destroys one snapshot. Must refuse anything that is not a snapshot."""

    def set_policy(self, volume, policy):
        raise NotImplementedError

    def clear_policy(self, volume):
        raise NotImplementedError

    def list_unconfigured(self):
        raise NotImplementedError

    def close(self):
        pass
