#!/usr/bin/env python3
"""
Management tool for zfs-autosnap: run the daemon, report status and edit the
retention policy stored on each volume.
"""

import argparse
import os
import sys

from ..common.config import ConfigManager, DEFAULT_CONFIG_FILE
from ..common.errors import AutosnapError, ConfigurationError
from ..common.utils import get_logger
from ..core.syntax import describe_rule, format_policy, parse_policy
from ..store.zfs import build_store
from .daemon import DaemonService
from .status import write_status

logger = get_logger(__name__)


def require_privilege(store, sandbox):
    """Snapshot changes on the local machine need root unless only simulating"""
    if sandbox or not store.local:
        return
    if os.geteuid() != 0:
        raise ConfigurationError("This command must be run as root (or use --sandbox)")


def cmd_run(args, config):
    sandbox = True if args.sandbox else None
    store = build_store(config)
    try:
        require_privilege(store, args.sandbox or config.get('sandbox', False))
    finally:
        store.close()
    DaemonService(args.config, sandbox=sandbox).start()


def cmd_status(args, config):
    store = build_store(config)
    try:
        volumes = store.list_volumes()
    finally:
        store.close()
    write_status(sys.stdout, volumes, verbose=args.verbose)


def cmd_set_policy(args, config):
    policy = parse_policy(args.policy)
    sandbox = args.sandbox or config.get('sandbox', False)
    store = build_store(config)
    try:
        require_privilege(store, sandbox)
        if sandbox:
            print(f"would set retention policy of {args.volume} to {format_policy(policy)}")
            return
        store.set_policy(args.volume, policy)
    finally:
        store.close()

    print(f"✓ Retention policy of {args.volume} set to {format_policy(policy)}")
    for rule in policy:
        print(f"  - {describe_rule(rule)}")


def cmd_clear_policy(args, config):
    sandbox = args.sandbox or config.get('sandbox', False)
    store = build_store(config)
    try:
        require_privilege(store, sandbox)
        if sandbox:
            print(f"would clear retention policy of {args.volume}")
            return
        store.clear_policy(args.volume)
    finally:
        store.close()
    print(f"✓ {args.volume} is no longer managed by zfs-autosnap")


def cmd_unconfigured(args, config):
    store = build_store(config)
    try:
        names = store.list_unconfigured()
    finally:
        store.close()

    if not names:
        print("All volumes have a retention policy")
        return
    for name in names:
        print(name)


def cmd_web(args, config):
    from ..web.app import serve
    serve(config, host=args.host, port=args.port)


def build_parser():
    parser = argparse.ArgumentParser(description="ZFS automatic snapshot manager")
    parser.add_argument('--config', default=DEFAULT_CONFIG_FILE, help='Configuration file')
    parser.add_argument('--sandbox', action='store_true',
                        help='Log the snapshot changes instead of making them')
    subparsers = parser.add_subparsers(dest='action', help='Action to perform')

    # Daemon
    subparsers.add_parser('run', help='Run the snapshot daemon')

    # Status
    status_parser = subparsers.add_parser('status', help='Show volumes and expired snapshots')
    status_parser.add_argument('--verbose', '-v', action='store_true', help='Detailed report')

    # Policy
    set_parser = subparsers.add_parser('set-policy', help='Set the retention policy of a volume')
    set_parser.add_argument('volume', help='Filesystem or volume name')
    set_parser.add_argument('policy', help="Rules such as '15m8:1h48:1d14'")

    clear_parser = subparsers.add_parser('clear-policy', help='Stop managing a volume')
    clear_parser.add_argument('volume', help='Filesystem or volume name')

    subparsers.add_parser('unconfigured', help='List volumes without a retention policy')

    # Web
    web_parser = subparsers.add_parser('web', help='Serve the status API')
    web_parser.add_argument('--host', help='Listen address')
    web_parser.add_argument('--port', type=int, help='Listen port')

    return parser


COMMANDS = {
    'run': cmd_run,
    'status': cmd_status,
    'set-policy': cmd_set_policy,
    'clear-policy': cmd_clear_policy,
    'unconfigured': cmd_unconfigured,
    'web': cmd_web,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.action)
    if command is None:
        parser.print_help()
        return 2

    try:
        config = ConfigManager(args.config).config
        command(args, config)
    except AutosnapError as e:
        logger.debug(f"{args.action} failed", exc_info=True)
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
