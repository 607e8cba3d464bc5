
import shlex
import subprocess

from ..common.errors import StoreError
from ..common.utils import get_logger

logger = get_logger(__name__)


class LocalRunner:
    """Runs store commands on this machine"""

    local = True

    def run(self, argv):
        """Runs argv and returns its stdout; raises StoreError on failure"""
        command = shlex.join(argv)
        logger.debug(f"Running: {command}")
        try:
            result = subprocess.run(argv, capture_output=True, text=True)
        except OSError as e:
            raise StoreError(f"Could not run {command}: {e}", command=command) from e

        if result.returncode != 0:
            raise StoreError(
                f"Command failed with exit code {result.returncode}: {command}",
                command=command,
                stderr=result.stderr,
            )
        return result.stdout

    def close(self):
        pass
