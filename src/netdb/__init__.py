"""
Resolves network protocol and service names and numbers, such as "tcp" <-> 6 or "bootps/udp" <-> 67.
Lookups use the OS netdb functions, then the protocols/services files, then a built-in table.
"""

__version__ = "1.0.0"

from threading import Lock

from .config import NetDBConfig, load_config
from .errors import BackendKind, BackendUnavailable, NetDBIterationError, UnavailableReason
from .netdb import NetDB, ProbeResult, ResolverState
from .netdb_parser import NetDBEntry, NetDBParser
from .records import Protocol, Service

__all__ = [
    "BackendKind",
    "BackendUnavailable",
    "NetDB",
    "NetDBConfig",
    "NetDBEntry",
    "NetDBIterationError",
    "NetDBParser",
    "ProbeResult",
    "Protocol",
    "ResolverState",
    "Service",
    "UnavailableReason",
    "default_netdb",
    "get_all_protocols",
    "get_all_services",
    "get_protocol_by_name",
    "get_protocol_by_number",
    "get_service_by_name",
    "get_service_by_port",
    "load_config",
]

_default_netdb = None
_default_lock = Lock()


def default_netdb():
    """Returns the process wide NetDB, creating it on first use."""
    global _default_netdb
    if _default_netdb is None:
        with _default_lock:
            if _default_netdb is None:
                _default_netdb = NetDB()
    return _default_netdb


def get_protocol_by_name(name):
    return default_netdb().get_protocol_by_name(name)


def get_protocol_by_number(number):
    return default_netdb().get_protocol_by_number(number)


def get_all_protocols():
    return default_netdb().get_all_protocols()


def get_service_by_name(name, proto=None):
    """Looks up a service by its name or alias, a proto of None matches tcp first, then udp."""
    return default_netdb().get_service_by_name(name, proto)


def get_service_by_port(port, proto=None):
    return default_netdb().get_service_by_port(port, proto)


def get_all_services():
    return default_netdb().get_all_services()
