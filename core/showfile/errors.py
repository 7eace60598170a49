"""
Show File Errors

Exceptions raised by the export/import path and by services that accept
a cancellation token. Repository and engine failures (sqlite3.Error and
friends) are never wrapped; they propagate to the caller as raised.
"""


class ShowfileError(Exception):
    """Base exception for show file operations."""
    pass


class DocumentParseError(ShowfileError):
    """The input document is not valid JSON or not a document object."""
    pass


class OperationCancelled(ShowfileError):
    """The caller's cancellation token was set before the operation finished."""
    pass
