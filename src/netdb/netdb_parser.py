"""
Parses netdb style files, such as /etc/protocols and /etc/services.
Each line contains a name, a data field, and optional aliases separated by whitespace:
    http            80/tcp          www     # WorldWideWeb HTTP
    tcp             6               TCP     # transmission control protocol
Anything after a '#' is a comment.
"""

from io import StringIO

from zenlib.logging import loggify
from zenlib.types import validatedDataclass

from .errors import NetDBIterationError

COMMENT_CHAR = "#"


@validatedDataclass
class NetDBEntry:
    name: str
    data: str  # "6" in a protocols file, "80/tcp" in a services file
    aliases: list


def parse_line(line):
    """Returns a NetDBEntry for the line, or None if the line has no entry.
    Lines need at least a name and a data field once the comment is removed."""
    fields = line.split(COMMENT_CHAR, 1)[0].split()
    if len(fields) < 2:
        return None
    return NetDBEntry(fields[0], fields[1], fields[2:])


@loggify
class NetDBParser:
    """Reads NetDBEntry objects from a text stream, one pass only.

    next() is strict, raising NetDBIterationError if the stream can't be read.
    has_next(), try_next() and entries() treat read errors as the end of the data.

    The stream is closed once by close() or by leaving the context manager.
    """

    def __init__(self, stream, *args, **kwargs):
        self.stream = stream
        self._next = None
        self._closed = False

    @classmethod
    def open(cls, path, *args, **kwargs):
        return cls(open(path, "r", encoding="utf-8", errors="replace"), *args, **kwargs)

    @classmethod
    def empty(cls, *args, **kwargs):
        return cls(StringIO(""), *args, **kwargs)

    @property
    def closed(self):
        return self._closed

    def _read_entry(self):
        if self._closed:
            return None
        while line := self.stream.readline():
            if entry := parse_line(line):
                return entry
            self.logger.log(5, "Skipping line: %r", line)

    def __iter__(self):
        return self

    def __next__(self):
        if self._next is not None:
            entry, self._next = self._next, None
            return entry
        try:
            entry = self._read_entry()
        except OSError as e:
            raise NetDBIterationError(self.stream, e) from e
        if entry is None:
            raise StopIteration
        return entry

    def try_next(self):
        """Returns the next entry, or None at the end of the data or on a read error."""
        try:
            return next(self)
        except StopIteration:
            return None
        except NetDBIterationError as e:
            self.logger.debug(e)
            return None

    def has_next(self):
        if self._next is None:
            self._next = self.try_next()
        return self._next is not None

    def entries(self):
        while (entry := self.try_next()) is not None:
            yield entry

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
