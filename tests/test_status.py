import io

from autosnap.core.syntax import parse_policy
from autosnap.daemon.status import write_status

MINUTE = 60


def render(volumes, now, verbose=False):
    out = io.StringIO()
    write_status(out, volumes, verbose=verbose, now=now)
    return out.getvalue()


def test_no_volumes(now):
    assert "No volumes configured" in render([], now)


def test_terse_report(make_volume, aged, now):
    volumes = [
        make_volume("tank/home", parse_policy("15m8:1h48:1d14:1w20"), [5 * MINUTE]),
        make_volume("tank/vm", parse_policy("1h2"), [10 * MINUTE, 70 * MINUTE, 130 * MINUTE]),
        make_volume("tank/new", parse_policy("1d7")),
    ]

    report = render(volumes, now)
    lines = report.splitlines()

    assert lines[0] == "Configured volumes"
    assert "Name" in lines[1] and "Next snapshot" in lines[1]
    assert "tank/home" in lines[2] and "15m8:1h48:1d14:1w20" in lines[2] and lines[2].endswith("10m")
    assert lines[4].endswith("never")
    assert "Snapshots to be removed" in report
    assert aged(130 * MINUTE, "tank/vm").name in report


def test_verbose_report(make_volume, aged, now):
    volumes = [make_volume("tank/vm", parse_policy("1h2"), [10 * MINUTE, 70 * MINUTE, 130 * MINUTE])]
    rejected = aged(130 * MINUTE, "tank/vm")

    report = render(volumes, now, verbose=True)

    assert "number of snapshots: 3" in report
    assert "next snapshot in: 50m" in report
    assert "- keep 2 snapshots spaced 1 hour apart" in report
    assert "Refers to" in report
    assert rejected.name in report
    assert rejected.created.strftime('%Y-%m-%dT%H:%M:%SZ') in report


def test_rejected_snapshots_are_listed_oldest_first(make_volume, aged, now):
    volumes = [make_volume("tank/vm", parse_policy("1h1"), [MINUTE, 5 * MINUTE, 10 * MINUTE, 20 * MINUTE])]
    expected = [aged(age * MINUTE, "tank/vm").name for age in (10, 5, 1)]

    for verbose in (False, True):
        report = render(volumes, now, verbose=verbose)
        positions = [report.index(name) for name in expected]
        assert positions == sorted(positions)
