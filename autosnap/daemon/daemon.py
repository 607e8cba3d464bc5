"""
Scheduling loop: fetch the volumes, sleep until the next snapshot is due,
take the due snapshots and destroy what the policies reject. Nothing is kept
between cycles; every decision comes from a fresh listing.
"""

import signal
import threading
import time
from datetime import timedelta

from ..common.config import ConfigManager, DEFAULT_CONFIG_FILE
from ..common.errors import AutosnapError, ConfigurationError
from ..common.retry import retry
from ..common.utils import format_duration, get_human_size, get_logger, setup_logging
from ..core.snapshot import ensure_snapshot_name, utc_now
from ..store.zfs import build_store
from .watcher import watch_config

logger = get_logger(__name__)


class StopRequested(Exception):
    """Raised inside a cycle once a stop has been requested"""


class DaemonSettings:
    """Loop settings validated from the configuration file"""

    def __init__(self, idle_poll=timedelta(minutes=10), fetch_retries=5,
                 fetch_retry_base_delay=1.0, fetch_retry_max_delay=60.0,
                 bootstrap_empty_volumes=False, sandbox=False):
        self.idle_poll = idle_poll
        self.fetch_retries = fetch_retries
        self.fetch_retry_base_delay = fetch_retry_base_delay
        self.fetch_retry_max_delay = fetch_retry_max_delay
        self.bootstrap_empty_volumes = bootstrap_empty_volumes
        self.sandbox = sandbox

    @classmethod
    def from_config(cls, config, sandbox=None):
        idle = config.get('idle_poll_seconds', 600)
        if not isinstance(idle, (int, float)) or idle <= 0:
            raise ConfigurationError(f"idle_poll_seconds must be a positive number, got {idle!r}")

        retries = config.get('fetch_retries', 5)
        if retries is not None and (not isinstance(retries, int) or retries < 0):
            raise ConfigurationError(f"fetch_retries must be a non-negative integer or null, got {retries!r}")

        delays = {}
        for key, default in (('fetch_retry_base_delay', 1.0), ('fetch_retry_max_delay', 60.0)):
            value = config.get(key, default)
            if not isinstance(value, (int, float)) or value < 0:
                raise ConfigurationError(f"{key} must be a non-negative number, got {value!r}")
            delays[key] = float(value)

        return cls(
            idle_poll=timedelta(seconds=idle),
            fetch_retries=retries,
            bootstrap_empty_volumes=bool(config.get('bootstrap_empty_volumes', False)),
            sandbox=bool(config.get('sandbox', False)) if sandbox is None else sandbox,
            **delays
        )


class SnapshotDaemon:
    """Single-threaded fetch, decide and act loop over a snapshot store"""

    def __init__(self, store, settings=None, reload=None):
        self.store = store
        self.settings = settings or DaemonSettings()
        self.reload = reload
        self.wake = threading.Event()
        self.stopping = False
        self.reload_requested = False

    def request_reload(self):
        self.reload_requested = True
        self.wake.set()

    def stop(self):
        self.stopping = True
        self.wake.set()

    def _pause(self, seconds):
        """Backoff sleep. Only a stop cuts it short, a reload waits for the cycle"""
        deadline = time.monotonic() + seconds
        remaining = seconds
        while remaining > 0:
            if self.wake.wait(remaining):
                self.wake.clear()
                self._check_stop()
            remaining = deadline - time.monotonic()
        self._check_stop()

    def _check_stop(self):
        if self.stopping:
            raise StopRequested()

    def fetch_volumes(self):
        fetch = retry(
            max_retries=self.settings.fetch_retries,
            base_delay=self.settings.fetch_retry_base_delay,
            max_delay=self.settings.fetch_retry_max_delay,
            logger=logger,
            sleep=self._pause,
        )(self.store.list_volumes)
        return fetch()

    def due_times(self, volumes, now):
        """Time until each volume needs a snapshot; None when it has no due time"""
        due = {}
        for volume in volumes:
            until = volume.until_next_snapshot(now)
            if until is None and not volume.snapshots:
                if self.settings.bootstrap_empty_volumes:
                    until = timedelta(0)
                else:
                    logger.warning(
                        f"Volume {volume.name} has no snapshots and will not be snapshotted automatically"
                    )
            due[volume.name] = until
        return due

    def until_next_cycle(self, volumes, now):
        due = [d for d in self.due_times(volumes, now).values() if d is not None]
        return min(due) if due else self.settings.idle_poll

    def run_cycle(self):
        """
        One fetch, sleep, act pass.

        Returns the actions taken, or None when the sleep was cut short by a
        reload request (the stale listing is then dropped).
        """
        volumes = self.fetch_volumes()
        self._check_stop()
        now = utc_now()
        sleep_for = self.until_next_cycle(volumes, now)
        deadline = now + sleep_for
        logger.info(f"{len(volumes)} configured volumes, next check in {format_duration(sleep_for)}")

        # A reload requested during the fetch has already cleared the wake flag
        if self.reload_requested or self.wake.wait(sleep_for.total_seconds()):
            self.wake.clear()
            self._check_stop()
            return None

        # A timer waking marginally early must still see the volume as due
        return self.act(volumes, max(utc_now(), deadline))

    def act(self, volumes, now=None):
        """Creates every due snapshot, then destroys every rejected one"""
        now = now or utc_now()
        actions = {'created': [], 'destroyed': []}

        due = self.due_times(volumes, now)
        for volume in volumes:
            if due[volume.name] == timedelta(0):
                self._check_stop()
                actions['created'].append(self.snapshot(volume))

        for volume in volumes:
            for snapshot in volume.judge().rejected_newest_first():
                self._check_stop()
                self.destroy(volume, snapshot)
                actions['destroyed'].append(snapshot.name)

        return actions

    def snapshot(self, volume):
        if self.settings.sandbox:
            logger.info(f"would snapshot volume: {volume.name}")
            return volume.name
        created = self.store.create_snapshot(volume.name)
        logger.info(f"made snapshot: {created.name}")
        return created.name

    def destroy(self, volume, snapshot):
        ensure_snapshot_name(snapshot.name, volume.name)
        if self.settings.sandbox:
            logger.info(f"would remove expired snapshot: {snapshot.name}")
            return
        self.store.destroy_snapshot(snapshot)
        logger.info(f"removed expired snapshot: {snapshot.name} ({get_human_size(snapshot.used)})")

    def run_forever(self):
        """Loops until stop() is called; store and configuration errors propagate"""
        logger.info("Starting snapshot daemon" + (" (sandbox)" if self.settings.sandbox else ""))
        while not self.stopping:
            if self.reload_requested:
                self.reload_requested = False
                self.wake.clear()
                if self.reload:
                    self.store, self.settings = self.reload()
            try:
                self.run_cycle()
            except StopRequested:
                break
        logger.info("Snapshot daemon stopped")


class DaemonService:
    """Wires configuration, store, config watcher and signals around the loop"""

    def __init__(self, config_file=DEFAULT_CONFIG_FILE, sandbox=None):
        self.config_file = config_file
        self.sandbox = sandbox
        self.config_manager = ConfigManager(config_file)
        self.observer = None
        self.daemon = None

    def build(self):
        config = self.config_manager.config
        settings = DaemonSettings.from_config(config, sandbox=self.sandbox)
        return build_store(config), settings

    def reload(self):
        """New store and settings from the file, or the current ones if it is invalid"""
        try:
            self.config_manager = ConfigManager(self.config_file)
            store, settings = self.build()
        except ConfigurationError as e:
            logger.error(f"Ignoring invalid configuration in {self.config_file}: {e}")
            return self.daemon.store, self.daemon.settings
        self.daemon.store.close()
        logger.info("Configuration reloaded")
        return store, settings

    def handle_signal(self, signum, frame):
        logger.info(f"Received signal {signum}, stopping after the current command")
        self.daemon.stop()

    def start(self):
        """Starts the daemon and blocks until it stops"""
        config = self.config_manager.config
        setup_logging(config.get('log_file'), config.get('log_level', 'INFO'))

        store, settings = self.build()
        self.daemon = SnapshotDaemon(store, settings, reload=self.reload)

        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        self.observer = watch_config(self.config_file, self.daemon.request_reload)

        try:
            self.daemon.run_forever()
        except AutosnapError as e:
            logger.error(f"Snapshot daemon terminated: {e}")
            raise
        finally:
            self.stop()

    def stop(self):
        """Stops the watcher and closes the store"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
        if self.daemon:
            self.daemon.store.close()
