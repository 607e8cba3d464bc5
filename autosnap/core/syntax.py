"""
Policy string syntax: colon-separated rules such as "15m8:1h48:1d14:1w20",
each an integer amount, a single-letter time unit and a copy count.
"""

from datetime import timedelta

from ..common.errors import ConfigurationError
from .retention import RetentionPolicy, RetentionRule

UNITS = [
    ('s', 1),
    ('m', 60),
    ('h', 60 * 60),
    ('d', 60 * 60 * 24),
    ('w', 60 * 60 * 24 * 7),
    ('y', 60 * 60 * 24 * 365),
]

UNIT_NAMES = {
    's': 'second',
    'm': 'minute',
    'h': 'hour',
    'd': 'day',
    'w': 'week',
    'y': 'year',
}


def parse_rule(text):
    """Parses a single rule token like '1h48'."""
    rule = text.strip()
    for unit, unit_seconds in UNITS:
        amount, sep, copies = rule.partition(unit)
        if not sep:
            continue
        if not amount.isdecimal():
            raise ConfigurationError(
                f"Could not parse duration between snapshots in rule '{rule}'"
            )
        if not copies.isdecimal():
            raise ConfigurationError(
                f"Could not parse number of copies to keep in rule '{rule}'"
            )
        try:
            period = timedelta(seconds=int(amount) * unit_seconds)
        except OverflowError:
            raise ConfigurationError(
                f"Duration between snapshots is out of range in rule '{rule}'"
            ) from None
        return RetentionRule(period=period, retained_copies=int(copies))

    valid = '|'.join(unit for unit, _ in UNITS)
    raise ConfigurationError(
        f"No valid time unit found in rule: '{rule}' (valid units are: {valid})"
    )


def parse_policy(text):
    """Parses a full policy string; rules come back sorted by period."""
    if text is None or not text.strip():
        raise ConfigurationError(
            "If a volume has a retention policy it needs to have at least one rule"
        )
    return RetentionPolicy(parse_rule(token) for token in text.split(':'))


def _largest_unit(period):
    seconds = int(period.total_seconds())
    if seconds != period.total_seconds():
        raise ConfigurationError(f"Period {period} cannot be written in whole seconds")
    for unit, unit_seconds in reversed(UNITS):
        if seconds % unit_seconds == 0 and seconds // unit_seconds > 0:
            return seconds // unit_seconds, unit
    raise ConfigurationError(f"Period {period} is not positive")


def format_rule(rule):
    amount, unit = _largest_unit(rule.period)
    return f"{amount}{unit}{rule.retained_copies}"


def format_policy(policy):
    return ':'.join(format_rule(rule) for rule in policy)


def describe_rule(rule):
    amount, unit = _largest_unit(rule.period)
    name = UNIT_NAMES[unit] + ('s' if amount != 1 else '')
    return f"keep {rule.retained_copies} snapshots spaced {amount} {name} apart"
