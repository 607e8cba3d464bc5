#!/usr/bin/env python3
"""
CLI Status Tool: configured volumes, their next snapshot, and the snapshots
the retention policies would remove.
"""

import argparse
import sys

from ..common.config import ConfigManager, DEFAULT_CONFIG_FILE
from ..common.errors import AutosnapError
from ..common.utils import format_duration, get_human_size
from ..core.snapshot import utc_now
from ..core.syntax import describe_rule, format_policy
from ..store.zfs import build_store

LINE_WIDTH = 80


def next_snapshot_text(volume, now):
    until = volume.until_next_snapshot(now)
    return format_duration(until) if until is not None else "never"


def write_status(out, volumes, verbose=False, now=None):
    now = now or utc_now()
    if not volumes:
        out.write("No volumes configured for auto snapshotting by this tool\n")
        return

    out.write("Configured volumes\n")
    if verbose:
        write_volumes_verbose(out, volumes, now)
        out.write("\n")
    else:
        write_volumes(out, volumes, now)
    out.write("Snapshots to be removed\n")
    if verbose:
        write_rejected_verbose(out, volumes)
    else:
        write_rejected(out, volumes)


def write_volumes(out, volumes, now):
    rows = [
        (v.name, str(len(v.snapshots)), format_policy(v.policy), next_snapshot_text(v, now))
        for v in volumes
    ]
    headers = ("Name", "#Snapshots", "Rules", "Next snapshot")
    widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(3)]

    def line(cells):
        return "  " + " | ".join(c.ljust(w) for c, w in zip(cells[:3], widths)) + f" | {cells[3]}\n"

    out.write(line(headers))
    for row in rows:
        out.write(line(row))


def write_volumes_verbose(out, volumes, now):
    for volume in volumes:
        out.write(f"  {volume.name}\n")
        out.write(f"    number of snapshots: {len(volume.snapshots)}\n")
        out.write(f"    next snapshot in: {next_snapshot_text(volume, now)}\n")
        out.write("    retention policy:\n")
        for rule in volume.policy:
            out.write(f"    - {describe_rule(rule)}\n")


def write_rejected(out, volumes):
    for volume in volumes:
        rejected = volume.judge().rejected_oldest_first()
        if not rejected:
            continue
        line = f"  {volume.name}:"
        for snapshot in rejected:
            if len(line) + 1 + len(snapshot.name) > LINE_WIDTH and line.strip():
                out.write(line + "\n")
                line = "   "
            line += " " + snapshot.name
        out.write(line + "\n")


def write_rejected_verbose(out, volumes):
    for volume in volumes:
        rejected = volume.judge().rejected_oldest_first()
        if not rejected:
            continue

        rows = [
            (s.name, s.created.strftime('%Y-%m-%dT%H:%M:%SZ'), get_human_size(s.used))
            for s in rejected
        ]
        headers = ("Name", "Created", "Refers to")
        widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(3)]

        out.write(f"  {volume.name}\n")
        for cells in [headers] + rows:
            out.write("    " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)).rstrip() + "\n")


def main():
    parser = argparse.ArgumentParser(description="zfs-autosnap status report")
    parser.add_argument('--config', default=DEFAULT_CONFIG_FILE, help='Configuration file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Detailed report')
    args = parser.parse_args()

    try:
        store = build_store(ConfigManager(args.config).config)
        try:
            volumes = store.list_volumes()
        finally:
            store.close()
    except AutosnapError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    write_status(sys.stdout, volumes, verbose=args.verbose)
    return 0


if __name__ == '__main__':
    sys.exit(main())
