"""
ctypes bindings for the C library protocol and service database functions.

This is the only module which reads native memory.
Records are copied into NativeProtocol/NativeService tuples before the native buffers are released,
s_port is returned exactly as stored in the servent struct (network byte order).
"""

import ctypes
from ctypes.util import find_library
from errno import ENOENT, ERANGE
from os import strerror
from platform import system
from typing import NamedTuple

from .config import DEFAULT_NATIVE_BUFFER_SIZE
from .errors import BackendKind, BackendUnavailable, UnavailableReason

MAX_BUFFER_SIZE = 1 << 20


class Protoent(ctypes.Structure):
    _fields_ = [
        ("p_name", ctypes.c_char_p),
        ("p_aliases", ctypes.POINTER(ctypes.c_char_p)),
        ("p_proto", ctypes.c_int),
    ]


class Servent(ctypes.Structure):
    _fields_ = [
        ("s_name", ctypes.c_char_p),
        ("s_aliases", ctypes.POINTER(ctypes.c_char_p)),
        ("s_port", ctypes.c_int),
        ("s_proto", ctypes.c_char_p),
    ]


class NativeProtocol(NamedTuple):
    name: str
    aliases: tuple
    number: int


class NativeService(NamedTuple):
    name: str
    aliases: tuple
    port: int  # Network byte order
    proto: str


def _decode(value):
    if value is None:
        return None
    return value.decode("utf-8", "replace")


def string_array(array):
    """Reads a NULL terminated char ** into a tuple of strings."""
    if not array:
        return ()
    strings = []
    while (value := array[len(strings)]) is not None:
        strings.append(_decode(value))
    return tuple(strings)


def protocol_from_struct(protoent):
    return NativeProtocol(_decode(protoent.p_name), string_array(protoent.p_aliases), protoent.p_proto)


def service_from_struct(servent):
    return NativeService(
        _decode(servent.s_name), string_array(servent.s_aliases), servent.s_port, _decode(servent.s_proto)
    )


def _encode(value):
    return value.encode() if value is not None else None


def _find_function(libraries, name):
    for library in libraries:
        try:
            return getattr(library, name)
        except AttributeError:
            continue
    raise BackendUnavailable(BackendKind.NATIVE, UnavailableReason.MISSING_SYMBOL, name)


_PROTOENT_P = ctypes.POINTER(Protoent)
_SERVENT_P = ctypes.POINTER(Servent)


class LibNetDB:
    """The classic netdb functions.
    These share static buffers and the set*ent/get*ent cursors, so callers must serialize every call."""

    reentrant = False
    FUNCTIONS = {
        "getprotobyname": ([ctypes.c_char_p], _PROTOENT_P),
        "getprotobynumber": ([ctypes.c_int], _PROTOENT_P),
        "setprotoent": ([ctypes.c_int], None),
        "getprotoent": ([], _PROTOENT_P),
        "endprotoent": ([], None),
        "getservbyname": ([ctypes.c_char_p, ctypes.c_char_p], _SERVENT_P),
        "getservbyport": ([ctypes.c_int, ctypes.c_char_p], _SERVENT_P),
        "setservent": ([ctypes.c_int], None),
        "getservent": ([], _SERVENT_P),
        "endservent": ([], None),
    }

    def __init__(self, libraries, *args, **kwargs):
        self.functions = {}
        for name, (argtypes, restype) in self.FUNCTIONS.items():
            function = _find_function(libraries, name)
            function.argtypes = argtypes
            function.restype = restype
            self.functions[name] = function

    def protocol_by_name(self, name):
        if entry := self.functions["getprotobyname"](_encode(name)):
            return protocol_from_struct(entry.contents)

    def protocol_by_number(self, number):
        if entry := self.functions["getprotobynumber"](number):
            return protocol_from_struct(entry.contents)

    def service_by_name(self, name, proto):
        if entry := self.functions["getservbyname"](_encode(name), _encode(proto)):
            return service_from_struct(entry.contents)

    def service_by_port(self, port, proto):
        """port must already be in network byte order."""
        if entry := self.functions["getservbyport"](port, _encode(proto)):
            return service_from_struct(entry.contents)

    def _next_protocol(self):
        if entry := self.functions["getprotoent"]():
            return protocol_from_struct(entry.contents)

    def _next_service(self):
        if entry := self.functions["getservent"]():
            return service_from_struct(entry.contents)

    def protocols(self):
        """Yields every protocol, endprotoent is always called once the generator finishes or is closed."""
        self.functions["setprotoent"](0)
        try:
            while (protocol := self._next_protocol()) is not None:
                yield protocol
        finally:
            self.functions["endprotoent"]()

    def services(self):
        """Yields every service, endservent is always called once the generator finishes or is closed."""
        self.functions["setservent"](0)
        try:
            while (service := self._next_service()) is not None:
                yield service
        finally:
            self.functions["endservent"]()


class GlibcNetDB(LibNetDB):
    """Uses the glibc *_r variants, which write into a caller supplied buffer.
    Lookups may run concurrently, enumeration still shares the process wide cursor."""

    reentrant = True
    FUNCTIONS = LibNetDB.FUNCTIONS | {
        "getprotobyname_r": (
            [ctypes.c_char_p, _PROTOENT_P, ctypes.POINTER(ctypes.c_char), ctypes.c_size_t, ctypes.POINTER(_PROTOENT_P)],
            ctypes.c_int,
        ),
        "getprotobynumber_r": (
            [ctypes.c_int, _PROTOENT_P, ctypes.POINTER(ctypes.c_char), ctypes.c_size_t, ctypes.POINTER(_PROTOENT_P)],
            ctypes.c_int,
        ),
        "getprotoent_r": (
            [_PROTOENT_P, ctypes.POINTER(ctypes.c_char), ctypes.c_size_t, ctypes.POINTER(_PROTOENT_P)],
            ctypes.c_int,
        ),
        "getservbyname_r": (
            [
                ctypes.c_char_p,
                ctypes.c_char_p,
                _SERVENT_P,
                ctypes.POINTER(ctypes.c_char),
                ctypes.c_size_t,
                ctypes.POINTER(_SERVENT_P),
            ],
            ctypes.c_int,
        ),
        "getservbyport_r": (
            [
                ctypes.c_int,
                ctypes.c_char_p,
                _SERVENT_P,
                ctypes.POINTER(ctypes.c_char),
                ctypes.c_size_t,
                ctypes.POINTER(_SERVENT_P),
            ],
            ctypes.c_int,
        ),
        "getservent_r": (
            [_SERVENT_P, ctypes.POINTER(ctypes.c_char), ctypes.c_size_t, ctypes.POINTER(_SERVENT_P)],
            ctypes.c_int,
        ),
    }

    def __init__(self, libraries, buffer_size=DEFAULT_NATIVE_BUFFER_SIZE, *args, **kwargs):
        super().__init__(libraries, *args, **kwargs)
        self.buffer_size = buffer_size

    def _call_r(self, name, struct_type, convert, *args):
        """Calls a *_r function, doubling the scratch buffer while it returns ERANGE.
        The record is converted while the buffer it points into is still alive."""
        size = self.buffer_size
        while True:
            result_buf = struct_type()
            buf = ctypes.create_string_buffer(size)
            result = ctypes.POINTER(struct_type)()
            ret = self.functions[name](*args, ctypes.byref(result_buf), buf, size, ctypes.byref(result))
            if ret == ERANGE and size < MAX_BUFFER_SIZE:
                size *= 2
                continue
            if ret == 0 and result:
                return convert(result_buf)
            if ret in (0, ENOENT):
                return None
            raise OSError(ret, f"{name} failed: {strerror(ret)}")

    def protocol_by_name(self, name):
        return self._call_r("getprotobyname_r", Protoent, protocol_from_struct, _encode(name))

    def protocol_by_number(self, number):
        return self._call_r("getprotobynumber_r", Protoent, protocol_from_struct, number)

    def service_by_name(self, name, proto):
        return self._call_r("getservbyname_r", Servent, service_from_struct, _encode(name), _encode(proto))

    def service_by_port(self, port, proto):
        return self._call_r("getservbyport_r", Servent, service_from_struct, port, _encode(proto))

    def _next_protocol(self):
        return self._call_r("getprotoent_r", Protoent, protocol_from_struct)

    def _next_service(self):
        return self._call_r("getservent_r", Servent, service_from_struct)


def _load_libraries(names):
    libraries = []
    for name in names:
        if path := find_library(name):
            try:
                libraries.append(ctypes.CDLL(path))
            except OSError:
                continue
    if not libraries:
        try:
            # The symbols of the running process include the C library
            libraries.append(ctypes.CDLL(None))
        except OSError as e:
            raise BackendUnavailable(BackendKind.NATIVE, UnavailableReason.LIBRARY_NOT_FOUND, e)
    return libraries


def load_linux(buffer_size):
    libraries = _load_libraries(["c"])
    try:
        return GlibcNetDB(libraries, buffer_size)
    except BackendUnavailable:
        # musl lacks some of the reentrant functions
        return LibNetDB(libraries)


def load_bsd(buffer_size):
    return LibNetDB(_load_libraries(["c"]))


def load_solaris(buffer_size):
    return LibNetDB(_load_libraries(["socket", "nsl", "c"]))


LOADERS = {
    "Linux": load_linux,
    "Darwin": load_bsd,
    "FreeBSD": load_bsd,
    "NetBSD": load_bsd,
    "SunOS": load_solaris,
}


def load_netdb_library(buffer_size=DEFAULT_NATIVE_BUFFER_SIZE, os_name=None):
    """Binds the netdb functions for the current OS.
    Only OS families where the protoent/servent layout matches the structs above are supported."""
    os_name = os_name or system()
    if loader := LOADERS.get(os_name):
        return loader(buffer_size)
    raise BackendUnavailable(BackendKind.NATIVE, UnavailableReason.UNSUPPORTED_PLATFORM, os_name)
