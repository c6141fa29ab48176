from enum import Enum

from zenlib.util import colorize


class BackendKind(Enum):
    NATIVE = "native"
    FILE = "file"
    BUILTIN = "builtin"


class UnavailableReason(Enum):
    UNSUPPORTED_PLATFORM = "native record layout is unknown for this platform"
    LIBRARY_NOT_FOUND = "native library could not be loaded"
    MISSING_SYMBOL = "native library lacks a required function"
    SANITY_CHECK_FAILED = "sanity lookup failed"
    FILE_NOT_FOUND = "database file does not exist"
    FILE_UNREADABLE = "database file could not be read"
    NO_ENTRIES = "database file has no valid entries"
    DISABLED = "disabled by configuration"


class BackendUnavailable(Exception):
    def __init__(self, kind, reason, detail=None):
        self.kind = kind
        self.reason = reason
        self.detail = detail

    def __str__(self):
        out_str = f"[{self.kind.value}] {colorize(self.reason.value, 'yellow')}"
        if self.detail:
            out_str += f": {self.detail}"
        return out_str


class NetDBIterationError(Exception):
    def __init__(self, stream, err):
        self.stream = stream
        self.err = err

    def __str__(self):
        return f"Error reading entries from {getattr(self.stream, 'name', self.stream)}: {self.err}"
