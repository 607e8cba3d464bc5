"""
ZFS implementation of the snapshot store.

Policies are kept on the datasets themselves, in a user property. User property
names must contain a colon to set them apart from native properties.
"""

from collections import defaultdict
from datetime import datetime, timezone

from ..common.errors import ConfigurationError, StoreError
from ..common.utils import get_logger
from ..core.snapshot import Snapshot, ensure_snapshot_name, newest_first, utc_now
from ..core.syntax import format_policy, parse_policy
from .base import SnapshotStore, Volume
from .runner import LocalRunner
from .ssh_client import SSHRunner

logger = get_logger(__name__)

POLICY_PROPERTY = 'zfs-autosnap:policy'
UNSET = '-'
SNAPSHOT_SUFFIX = '-autosnap'

SIZE_SUFFIXES = 'BKMGTPEZ'


def parse_datetime(value):
    """Epoch seconds (zfs -p) or the ctime-like 'Sat Oct 2 09:59 2021' form"""
    value = value.strip()
    if value.isdecimal():
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    try:
        # zfs prints creation in local time
        local = datetime.strptime(value, '%a %b %d %H:%M %Y')
    except ValueError:
        raise StoreError(f"can't parse datetime: {value}") from None
    return local.astimezone(timezone.utc)


def parse_used(value):
    """Raw bytes (zfs -p) or sizes like 1.2M, which zfs means as MiB"""
    value = value.strip()
    if value.isdecimal():
        return int(value)
    if value and value[-1].upper() in SIZE_SUFFIXES:
        number, suffix = value[:-1], value[-1].upper()
        try:
            return int(float(number) * 1024 ** SIZE_SUFFIXES.index(suffix))
        except ValueError:
            pass
    raise StoreError(f"can't parse size: {value}")


def parse_snapshots(rows):
    """
    Rows of (name, creation, used, policy property) into Snapshots.

    A snapshot whose property reads '-' has been opted out explicitly
    and is never managed.
    """
    snapshots = []
    for row in rows:
        if len(row) != 4:
            raise StoreError("list snapshots parse error")
        name, created, used, policy = row
        if policy == UNSET:
            continue
        snapshots.append(Snapshot(
            name=name,
            created=parse_datetime(created),
            used=parse_used(used),
        ))
    return snapshots


class ZfsStore(SnapshotStore):
    """Snapshot store backed by the zfs(8) command line tool"""

    def __init__(self, runner=None, zfs_command='zfs', policy_property=POLICY_PROPERTY):
        self.runner = runner or LocalRunner()
        self.zfs_command = zfs_command
        self.policy_property = policy_property

    @property
    def local(self):
        return getattr(self.runner, 'local', True)

    def call_read(self, action, args):
        """Runs a listing command and splits its output into a table"""
        output = self.runner.run([self.zfs_command, action, '-H', *args])
        return [line.split('\t') for line in output.splitlines() if line]

    def call_do(self, action, args):
        """Performs a side effect, like snapshot or destroy"""
        self.runner.run([self.zfs_command, action, *args])

    def list_snapshots(self):
        """Snapshots under our control, grouped by volume, newest first"""
        rows = self.call_read('list', [
            '-p', '-t', 'snapshot',
            '-o', f'name,creation,used,{self.policy_property}',
        ])
        grouped = defaultdict(list)
        for snapshot in parse_snapshots(rows):
            grouped[snapshot.volume].append(snapshot)
        return {volume: newest_first(snapshots) for volume, snapshots in grouped.items()}

    def _policy_rows(self):
        rows = self.call_read('get', [
            '-p', '-t', 'filesystem,volume',
            '-o', 'name,value', self.policy_property,
        ])
        for row in rows:
            if len(row) != 2:
                raise StoreError("get policy property parse error")
        return rows

    def list_configured(self):
        """(volume name, RetentionPolicy) for every volume with a policy"""
        configured = []
        for name, value in self._policy_rows():
            if value == UNSET:
                continue
            try:
                configured.append((name, parse_policy(value)))
            except ConfigurationError as e:
                raise ConfigurationError(f"Invalid retention policy on {name}: {e}") from e
        return configured

    def list_unconfigured(self):
        return [name for name, value in self._policy_rows() if value == UNSET]

    def list_volumes(self):
        snapshots = self.list_snapshots()
        volumes = [
            Volume(name, policy, snapshots.pop(name, ()))
            for name, policy in self.list_configured()
        ]
        logger.debug(f"Found {len(volumes)} configured volumes")
        return volumes

    def describe_snapshot(self, name):
        rows = self.call_read('list', [
            '-p', '-t', 'snapshot',
            '-o', f'name,creation,used,{self.policy_property}', name,
        ])
        if len(rows) != 1 or len(rows[0]) != 4:
            raise StoreError(f"Unexpected listing for snapshot {name}")
        name, created, used, _ = rows[0]
        return Snapshot(name=name, created=parse_datetime(created), used=parse_used(used))

    def create_snapshot(self, volume, now=None):
        """Takes a snapshot of the given volume, with an auto-generated name"""
        if '@' in volume:
            raise StoreError(f"Cannot snapshot a snapshot: {volume}")
        now = now or utc_now()
        name = f"{volume}@{now.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')}{SNAPSHOT_SUFFIX}"
        self.call_do('snapshot', [name])
        return self.describe_snapshot(name)

    def destroy_snapshot(self, snapshot):
        # zfs has a single verb for destroying anything, so check that the
        # name really is a snapshot before calling it.
        ensure_snapshot_name(snapshot.name)
        self.call_do('destroy', [snapshot.name])

    def set_policy(self, volume, policy):
        self.call_do('set', [f'{self.policy_property}={format_policy(policy)}', volume])

    def clear_policy(self, volume):
        self.call_do('inherit', [self.policy_property, volume])

    def close(self):
        self.runner.close()


def build_store(config):
    """ZfsStore for the configuration: local, or remote when 'ssh' is set"""
    ssh = config.get('ssh')
    runner = SSHRunner(ssh) if ssh else LocalRunner()
    return ZfsStore(runner, zfs_command=config.get('zfs_command', 'zfs'))
