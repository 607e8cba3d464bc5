
import shlex

import paramiko

from ..common.errors import ConfigurationError, StoreError
from ..common.utils import get_logger

logger = get_logger(__name__)


class SSHRunner:
    """Runs store commands on a remote host over SSH"""

    local = False

    def __init__(self, config):
        self.host = config.get('host')
        if not self.host:
            raise ConfigurationError("ssh configuration needs a 'host'")
        self.port = config.get('port', 22)
        self.username = config.get('username')
        self.key_file = config.get('key_file')
        self.strict_host_keys = config.get('strict_host_keys', True)
        self.timeout = config.get('timeout', 10)
        self.ssh_client = None

    def connect(self):
        """Establishes the SSH connection"""
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self.strict_host_keys:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                key_filename=self.key_file,
                timeout=self.timeout
            )
        except (paramiko.SSHException, OSError) as e:
            raise StoreError(f"SSH connection to {self.host}:{self.port} failed: {e}") from e

        self.ssh_client = client
        logger.info(f"SSH connection established with {self.host}:{self.port}")

    def close(self):
        """Closes the SSH connection"""
        if self.ssh_client:
            self.ssh_client.close()
            self.ssh_client = None
            logger.info("SSH connection closed")

    def ensure_connection(self):
        """Re-establishes connection if dropped"""
        transport = self.ssh_client.get_transport() if self.ssh_client else None
        if not transport or not transport.is_active():
            self.connect()

    def run(self, argv):
        """Runs argv on the remote host and returns its stdout"""
        self.ensure_connection()
        command = shlex.join(argv)
        logger.debug(f"Running on {self.host}: {command}")

        try:
            stdin, stdout, stderr = self.ssh_client.exec_command(command)
            # Drain output before waiting, large listings would fill the window
            output = stdout.read().decode()
            error_out = stderr.read().decode()
            exit_code = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise StoreError(f"Remote command failed on {self.host}: {command}: {e}", command=command) from e

        if exit_code != 0:
            raise StoreError(
                f"Remote command failed with exit code {exit_code}: {command}",
                command=command,
                stderr=error_out,
            )
        return output
