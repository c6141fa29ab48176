"""
Protocol and service lookups through the operating system's netdb functions.

servent.s_port is stored in network byte order, but ctypes reads it as a host order int.
On little endian hosts the two low bytes are swapped back before use.
The swapped value is a signed short, so ports >= 32768 are converted back to unsigned.
"""

from struct import pack, unpack
from sys import byteorder as HOST_BYTEORDER
from threading import Lock

from zenlib.logging import loggify
from zenlib.util import colorize

from .base import ProtocolsDB, ServicesDB
from .errors import BackendKind, BackendUnavailable, UnavailableReason
from .libc import load_netdb_library
from .records import Protocol, Service

C_INT_MIN, C_INT_MAX = -(1 << 31), (1 << 31) - 1


def _host_format(byteorder):
    return "<H" if byteorder == "little" else ">H"


def unsigned_port(port):
    """Ports never carry a sign, reinterprets a negative 16 bit value as unsigned."""
    if port < 0:
        port = (port & 0x7FFF) + 0x8000
    return port


def network_to_host_port(raw_port, byteorder=HOST_BYTEORDER):
    """Converts a servent port, as read from memory in host order, into the real port number.
    The two least significant bytes of raw_port hold the port in network byte order."""
    port = unpack("!h", pack(_host_format(byteorder), raw_port & 0xFFFF))[0]
    return unsigned_port(port)


def host_to_network_port(port, byteorder=HOST_BYTEORDER):
    """Converts a port number into the value getservbyport expects."""
    return unpack(_host_format(byteorder), pack("!H", port))[0]


def _sanity_check(db, *lookups):
    """Runs lookups which must find something on any working system."""
    for description, lookup in lookups:
        try:
            result = lookup()
        except Exception as e:
            raise BackendUnavailable(db.kind, UnavailableReason.SANITY_CHECK_FAILED, f"{description}: {e!r}")
        if result is None:
            raise BackendUnavailable(db.kind, UnavailableReason.SANITY_CHECK_FAILED, f"{description}: not found")
    return db


class NativeDB:
    """Serializes calls into the library unless it is reentrant.
    Enumeration is always serialized, the set*ent/get*ent cursor is process wide."""

    kind = BackendKind.NATIVE

    def __init__(self, lib, *args, **kwargs):
        self.lib = lib
        self._lock = Lock()

    def _call(self, function, *args):
        if self.lib.reentrant:
            return function(*args)
        with self._lock:
            return function(*args)

    def _enumerate(self, entries):
        with self._lock:
            return list(entries())

    @classmethod
    def _load_lib(cls, config, logger=None):
        try:
            return load_netdb_library(config.native_buffer_size)
        except BackendUnavailable as e:
            if logger and e.reason != UnavailableReason.UNSUPPORTED_PLATFORM:
                logger.warning("Failed to load the native netdb library: %s", e)
            raise


@loggify
class NativeProtocolsDB(NativeDB, ProtocolsDB):
    @classmethod
    def load(cls, config, *args, **kwargs):
        lib = cls._load_lib(config, kwargs.get("logger"))
        db = cls(lib, *args, **kwargs)
        _sanity_check(
            db,
            ("getprotobyname(ip)", lambda: db.get_protocol_by_name("ip")),
            ("getprotobynumber(0)", lambda: db.get_protocol_by_number(0)),
        )
        db.logger.debug("Loaded native protocols db, reentrant: %s", colorize(lib.reentrant, "cyan"))
        return db

    @staticmethod
    def _protocol(entry):
        if entry is None:
            return None
        return Protocol(entry.name, entry.number, entry.aliases)

    def get_protocol_by_name(self, name):
        return self._protocol(self._call(self.lib.protocol_by_name, name))

    def get_protocol_by_number(self, number):
        if not C_INT_MIN <= number <= C_INT_MAX:
            return None
        return self._protocol(self._call(self.lib.protocol_by_number, number))

    def get_all_protocols(self):
        return [self._protocol(entry) for entry in self._enumerate(self.lib.protocols)]


@loggify
class NativeServicesDB(NativeDB, ServicesDB):
    def __init__(self, lib, byteorder=HOST_BYTEORDER, *args, **kwargs):
        super().__init__(lib, *args, **kwargs)
        self.byteorder = byteorder

    @classmethod
    def load(cls, config, *args, **kwargs):
        lib = cls._load_lib(config, kwargs.get("logger"))
        db = cls(lib, *args, **kwargs)
        _sanity_check(
            db,
            ("getservbyname(bootps/udp)", lambda: db.get_service_by_name("bootps", "udp")),
            ("getservbyport(67/udp)", lambda: db.get_service_by_port(67, "udp")),
        )
        db.logger.debug("Loaded native services db, reentrant: %s", colorize(lib.reentrant, "cyan"))
        return db

    def _service(self, entry):
        if entry is None:
            return None
        return Service(entry.name, network_to_host_port(entry.port, self.byteorder), entry.proto, entry.aliases)

    def get_service_by_name(self, name, proto=None):
        return self._service(self._call(self.lib.service_by_name, name, proto))

    def get_service_by_port(self, port, proto=None):
        if not 0 <= port <= 0xFFFF:
            return None
        nport = host_to_network_port(port, self.byteorder)
        return self._service(self._call(self.lib.service_by_port, nport, proto))

    def get_all_services(self):
        return [self._service(entry) for entry in self._enumerate(self.lib.services)]
