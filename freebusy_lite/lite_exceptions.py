"""Exception hierarchy for freebusy_lite.

Specific exception types let the request handler map failures onto HTTP
status codes: validation problems become 400, everything else becomes 500.
Per-event failures (unparseable recurrence rules) are raised by the expander
and caught one level up so a single bad entry never fails a whole response.
"""


class FreeBusyError(Exception):
    """Base exception for all freebusy_lite errors."""


class ConfigError(FreeBusyError):
    """Required configuration is missing or invalid.

    Raised when the CalDAV account identifier or application password is not
    set. The long-lived server refuses to start; the function adapter answers 500.
    """


class WindowValidationError(FreeBusyError):
    """The requested query window is missing or unparseable.

    Should result in HTTP 400 Bad Request response. Not a server fault.
    """


class CalDAVFetchError(FreeBusyError):
    """Fetching calendar data from the CalDAV server failed.

    Raised when:
    - The server is unreachable or the request times out
    - The server answers with a non-success HTTP status
    - A multistatus response cannot be parsed
    - Calendar home or collection discovery fails

    Propagates to the request handler and results in HTTP 500.
    """


class CalDAVAuthError(CalDAVFetchError):
    """The CalDAV server rejected the configured credentials (401/403)."""


class RecurrenceExpansionError(FreeBusyError):
    """A recurrence rule could not be parsed or expanded.

    Scoped to a single event; callers log it and skip the event.
    """
