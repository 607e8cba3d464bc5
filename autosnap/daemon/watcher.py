from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..common.utils import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Calls `on_change` whenever the watched configuration file changes"""

    def __init__(self, config_file, on_change):
        self.config_file = Path(config_file).resolve()
        self.on_change = on_change

    def is_config(self, path):
        if not path:
            return False
        try:
            return Path(path).resolve() == self.config_file
        except (OSError, ValueError):
            return False

    def on_created(self, event):
        if not event.is_directory and self.is_config(event.src_path):
            self._changed(event.src_path)

    def on_modified(self, event):
        if not event.is_directory and self.is_config(event.src_path):
            self._changed(event.src_path)

    def on_moved(self, event):
        """Editors often save by renaming a temporary file over the original"""
        if not event.is_directory and self.is_config(event.dest_path):
            self._changed(event.dest_path)

    def _changed(self, path):
        logger.info(f"Configuration changed: {path}")
        self.on_change()


def watch_config(config_file, on_change):
    """Starts an observer on the config file's directory and returns it"""
    handler = ConfigFileHandler(config_file, on_change)
    observer = Observer()
    observer.schedule(handler, str(handler.config_file.parent), recursive=False)
    observer.start()
    return observer
