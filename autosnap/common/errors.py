"""Exception types raised by zfs-autosnap"""


class AutosnapError(Exception):
    """Base exception for zfs-autosnap"""

    pass


class ConfigurationError(AutosnapError):
    """Malformed retention policy or invalid configuration value"""

    pass


class StoreError(AutosnapError):
    """The snapshot store command failed or returned unusable output"""

    def __init__(self, message, command=None, stderr=None):
        super().__init__(message)
        self.command = command
        self.stderr = stderr

    def __str__(self):
        message = super().__str__()
        if self.stderr:
            message += f" ({self.stderr.strip()})"
        return message


class UnsafeDestroyError(StoreError):
    """Refused to destroy something that is not a snapshot of the expected volume"""

    pass
