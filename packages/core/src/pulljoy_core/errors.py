"""Exceptions that cross module boundaries in pulljoy_core."""


class BugError(Exception):
    """An internal consistency violation, e.g. a persisted state outside the known set.

    Reported to the PR thread as a bug and re-raised for operator visibility.
    """


class UnsupportedEventType(TypeError):
    """The router was handed an event it does not know how to classify."""
