
import json
import os
import logging

from .errors import ConfigurationError

DEFAULT_CONFIG_FILE = 'autosnap_config.json'

DEFAULT_CONFIG = {
    'zfs_command': 'zfs',
    'ssh': None,
    'idle_poll_seconds': 600,
    'fetch_retries': 5,
    'fetch_retry_base_delay': 1.0,
    'fetch_retry_max_delay': 60.0,
    'bootstrap_empty_volumes': False,
    'sandbox': False,
    'log_file': 'autosnap.log',
    'log_level': 'INFO',
    'web_host': '127.0.0.1',
    'web_port': 8080,
    'web_password': None,
}


class ConfigManager:
    """Base class for configuration management"""

    def __init__(self, config_file=DEFAULT_CONFIG_FILE, default_config=None):
        self.config_file = config_file
        self.default_config = dict(DEFAULT_CONFIG if default_config is None else default_config)
        self.config = self.load_config()

    def load_config(self):
        """Loads configuration from JSON file or creates it with defaults"""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    loaded = json.load(f)
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Error loading config file {self.config_file}: {e}") from e
            if not isinstance(loaded, dict):
                raise ConfigurationError(f"Config file {self.config_file} must contain a JSON object")
            # Keys missing from the file fall back to the defaults
            config = dict(self.default_config)
            config.update(loaded)
            return config
        else:
            if self.default_config:
                self.save_config(self.default_config)
            return dict(self.default_config)

    def save_config(self, config=None):
        """Saves configuration to JSON file"""
        if config:
            self.config = dict(config)

        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=4)
        except OSError as e:
            logging.error(f"Error saving config file {self.config_file}: {e}")

    def get(self, key, default=None):
        """Gets a configuration value"""
        return self.config.get(key, default)

    def set(self, key, value):
        """Sets a configuration value and saves"""
        self.config[key] = value
        self.save_config()
