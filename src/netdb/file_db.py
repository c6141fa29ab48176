"""
Looks up protocols and services by parsing the system protocols and services files.
This is typically /etc/protocols and /etc/services.

The file is parsed again for every lookup, so edits are seen immediately.
Lines which can't be parsed are skipped, a missing or unreadable file is treated as an empty one.
"""

from abc import ABC, abstractmethod
from re import fullmatch

from zenlib.logging import loggify
from zenlib.util import colorize

from .base import ProtocolsDB, ServicesDB
from .errors import BackendKind, BackendUnavailable, NetDBIterationError, UnavailableReason
from .netdb_parser import NetDBParser
from .records import Protocol, Service

INT_MIN, INT_MAX = -(1 << 31), (1 << 31) - 1
PORT_MAX = 0xFFFF


def parse_int(value):
    """Parses a base 10, 32 bit signed integer, returns None if value isn't one."""
    if fullmatch(r"[+-]?[0-9]+", value) and INT_MIN <= (number := int(value, 10)) <= INT_MAX:
        return number


def parse_protocol_entry(entry):
    if (number := parse_int(entry.data)) is None:
        return None
    return Protocol(entry.name, number, entry.aliases)


def parse_service_entry(entry):
    """Parses the "port/protocol" data field of a services entry."""
    port_proto = entry.data.split("/")
    if len(port_proto) < 2:
        return None
    port = parse_int(port_proto[0])
    if port is None or not 0 <= port <= PORT_MAX:
        return None
    return Service(entry.name, port, port_proto[1], entry.aliases)


class FileDB(ABC):
    """Scans a netdb style file, converting each entry with parse_entry."""

    kind = BackendKind.FILE

    def __init__(self, db_file, *args, **kwargs):
        self.db_file = db_file

    @abstractmethod
    def parse_entry(self, entry):
        """Converts a NetDBEntry into a record, or None if it is malformed."""

    def open_parser(self):
        try:
            return NetDBParser.open(self.db_file, logger=self.logger)
        except OSError as e:
            self.logger.debug("Unable to open database file, parsing as empty: %s", colorize(e, "yellow"))
            return NetDBParser.empty(logger=self.logger)

    def scan(self):
        """Yields every well formed record in file order.
        Read errors end the scan, errors closing the file are raised."""
        with self.open_parser() as parser:
            for entry in parser.entries():
                if (record := self.parse_entry(entry)) is not None:
                    yield record

    def find(self, match):
        """Returns the first record where match(record) is true, or None."""
        scanner = self.scan()
        try:
            for record in scanner:
                if match(record):
                    return record
        finally:
            scanner.close()

    def check_available(self):
        """Requires the file to exist and hold at least one valid entry."""
        try:
            parser = NetDBParser.open(self.db_file, logger=self.logger)
        except FileNotFoundError as e:
            raise BackendUnavailable(self.kind, UnavailableReason.FILE_NOT_FOUND, e)
        except OSError as e:
            raise BackendUnavailable(self.kind, UnavailableReason.FILE_UNREADABLE, e)

        with parser:
            try:
                entry = next(parser)
            except StopIteration:
                raise BackendUnavailable(self.kind, UnavailableReason.NO_ENTRIES, self.db_file)
            except NetDBIterationError as e:
                raise BackendUnavailable(self.kind, UnavailableReason.FILE_UNREADABLE, e)
        self.logger.debug("[%s] First entry: %s", self.db_file, entry)
        return self

    def __str__(self):
        return "\n".join(str(record) for record in self.scan())


@loggify
class FileProtocolsDB(FileDB, ProtocolsDB):
    def __init__(self, protocols_file="/etc/protocols", *args, **kwargs):
        super().__init__(protocols_file, *args, **kwargs)

    @property
    def protocols_file(self):
        return self.db_file

    @classmethod
    def load(cls, config, *args, **kwargs):
        return cls(config.protocols_file, *args, **kwargs).check_available()

    def parse_entry(self, entry):
        return parse_protocol_entry(entry)

    def get_protocol_by_name(self, name):
        return self.find(lambda protocol: name in protocol.names)

    def get_protocol_by_number(self, number):
        return self.find(lambda protocol: protocol.number == number)

    def get_all_protocols(self):
        return list(self.scan())


@loggify
class FileServicesDB(FileDB, ServicesDB):
    def __init__(self, services_file="/etc/services", *args, **kwargs):
        super().__init__(services_file, *args, **kwargs)

    @property
    def services_file(self):
        return self.db_file

    @classmethod
    def load(cls, config, *args, **kwargs):
        return cls(config.services_file, *args, **kwargs).check_available()

    def parse_entry(self, entry):
        return parse_service_entry(entry)

    def get_service_by_name(self, name, proto=None):
        return self.find(lambda service: (proto is None or service.protocol == proto) and name in service.names)

    def get_service_by_port(self, port, proto=None):
        return self.find(lambda service: service.port == port and (proto is None or service.protocol == proto))

    def get_all_services(self):
        return list(self.scan())
