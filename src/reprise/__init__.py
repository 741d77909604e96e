"""Reprise: spaced-repetition revisit scheduling and daily reminders."""

from reprise.consts import VERSION

__version__ = VERSION
