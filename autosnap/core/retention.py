"""
Retention Policy Engine
Decides which snapshots a multi-tier policy still needs and when the next
snapshot is due. Pure functions of (policy, snapshots, now): no I/O, no state.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from ..common.errors import ConfigurationError
from .snapshot import EPOCH, oldest_first, utc_now

# Snapshot times plus a period must stay below datetime.max (year 9999)
MAX_PERIOD = timedelta(days=365 * 1000)


@dataclass(frozen=True)
class RetentionRule:
    """Keep `retained_copies` snapshots spaced at least `period` apart."""

    period: timedelta
    retained_copies: int

    def __post_init__(self):
        if self.period <= timedelta(0):
            raise ConfigurationError(f"Snapshot period must be positive, got {self.period}")
        if self.period > MAX_PERIOD:
            raise ConfigurationError(f"Snapshot period must be at most 1000 years, got {self.period}")
        if self.retained_copies < 1:
            raise ConfigurationError(
                f"Number of copies must be larger than zero, got {self.retained_copies}"
            )

    def __lt__(self, other):
        return self.period < other.period

    def bounded_start(self, created_oldest_first):
        """
        Index of the first snapshot this rule still considers.

        Starting at index n, a greedy sweep counts the snapshots that open a
        new period slot. The first n whose count fits in retained_copies is
        the cut point. Large gaps (the daemon being offline) only mean fewer
        snapshots fall in the window, they never inflate the count.
        """
        for n in range(len(created_oldest_first)):
            keep_next_newer_than = EPOCH
            considered = 0
            for created in created_oldest_first[n:]:
                if created >= keep_next_newer_than:
                    keep_next_newer_than = created + self.period
                    considered += 1
            if considered <= self.retained_copies:
                return n
        return 0

    def rejected_indices(self, created_oldest_first):
        """Indices (oldest-first) of snapshots this rule alone does not need."""
        start = self.bounded_start(created_oldest_first)
        rejected = set(range(start))

        retain_next_newer_than = EPOCH
        for i in range(start, len(created_oldest_first)):
            created = created_oldest_first[i]
            if created >= retain_next_newer_than:
                retain_next_newer_than = created + self.period
            else:
                rejected.add(i)
        return rejected

    def bounded(self, snapshots):
        """The bounded working set, oldest-first."""
        ordered = oldest_first(snapshots)
        start = self.bounded_start([s.created for s in ordered])
        return ordered[start:]

    def rejects(self, snapshots):
        ordered = oldest_first(snapshots)
        indices = self.rejected_indices([s.created for s in ordered])
        return {ordered[i] for i in indices}

    def next_due(self, snapshots, now=None):
        """Time until this rule wants a new snapshot, or None without history."""
        bounded = self.bounded(snapshots)
        if not bounded:
            return None
        now = now or utc_now()
        return max(bounded[-1].created + self.period - now, timedelta(0))


@dataclass
class Judgement:
    """Partition of one snapshot list into rejected and retained-by-rules."""

    rejected: set = field(default_factory=set)
    retained: dict = field(default_factory=dict)

    def rejected_oldest_first(self):
        return sorted(self.rejected, key=lambda s: s.sort_key())

    def rejected_newest_first(self):
        return sorted(self.rejected, key=lambda s: s.sort_key(), reverse=True)


class RetentionPolicy:
    """A non-empty, unordered collection of RetentionRules for one volume."""

    def __init__(self, rules):
        rules = sorted(rules)
        if not rules:
            raise ConfigurationError(
                "If a volume has a retention policy it needs to have at least one rule"
            )
        self.rules = tuple(rules)

    def __eq__(self, other):
        if not isinstance(other, RetentionPolicy):
            return NotImplemented
        return self.rules == other.rules

    def __hash__(self):
        return hash(self.rules)

    def __repr__(self):
        return f"RetentionPolicy({list(self.rules)!r})"

    def __iter__(self):
        return iter(self.rules)

    def __len__(self):
        return len(self.rules)

    def shortest_period(self):
        return self.rules[0].period

    def next_snapshot_due(self, snapshots, now=None):
        """Minimum over the rules' due times, ignoring rules without one."""
        now = now or utc_now()
        due = [d for d in (rule.next_due(snapshots, now) for rule in self.rules) if d is not None]
        return min(due) if due else None

    def judge(self, snapshots):
        """
        A snapshot survives when at least one rule still wants it.

        Each snapshot gets a stable index for the duration of the call and
        every index starts with all (distinct) rules as retainers. A rule
        rejecting an index removes itself from that index's retainers; an
        index left without retainers is rejected overall.
        """
        ordered = oldest_first(snapshots)
        created = [s.created for s in ordered]
        rules = list(dict.fromkeys(self.rules))

        retainers = [set(range(len(rules))) for _ in ordered]
        for r, rule in enumerate(rules):
            for i in rule.rejected_indices(created):
                retainers[i].discard(r)

        judgement = Judgement()
        for i, snapshot in enumerate(ordered):
            if retainers[i]:
                judgement.retained[snapshot] = {rules[r] for r in retainers[i]}
            else:
                judgement.rejected.add(snapshot)
        return judgement
