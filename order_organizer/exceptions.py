"""
exceptions.py
-------------
Error hierarchy for the organizer.

    OrganizerError
    ├── ConfigurationError - fatal, raised before anything on disk changes
    │   ├── LedgerNotFound
    │   ├── SourceRootNotFound
    │   ├── SheetNotFound
    │   ├── HeaderMissing
    │   └── ColumnNotFound
    └── ArchiveError
        ├── ArchiveNotFound
        └── PathTraversal

Row-level problems (blank id, unreadable date) are not exceptions: they are
warnings on the RunReport. OSError from copy/move/delete is not wrapped.
"""


class OrganizerError(Exception):
    """Base for every error the organizer raises on purpose."""


class ConfigurationError(OrganizerError):
    """Bad or missing input detected before any mutation."""


class LedgerNotFound(ConfigurationError):
    pass


class SourceRootNotFound(ConfigurationError):
    pass


class SheetNotFound(ConfigurationError):
    pass


class HeaderMissing(ConfigurationError):
    pass


class ColumnNotFound(ConfigurationError):
    """
    Raised when a header is absent even after normalization.

    Attributes:
        column: The header name as it was requested
    """

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Column '{column}' not found in header (normalized lookup)")


class ArchiveError(OrganizerError):
    pass


class ArchiveNotFound(ArchiveError):
    pass


class PathTraversal(ArchiveError):
    """
    An archive entry resolves outside the extraction root (zip slip).

    Attributes:
        entry: Offending entry name
        target: Extraction root
    """

    def __init__(self, entry: str, target):
        self.entry = entry
        self.target = target
        super().__init__(f"Archive entry '{entry}' escapes extraction root '{target}'")
