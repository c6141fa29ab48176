"""
Built-in tables of IANA protocol numbers and service ports.
Used when neither the native functions nor the system files are available, this backend can't fail to load.

The tables are shipped as package data in the /etc/protocols and /etc/services formats,
and are parsed once, the first time they are used.
When names or ports collide, the later entry wins.
"""

from abc import ABC, abstractmethod
from importlib.resources import files
from itertools import chain
from threading import Lock

from zenlib.logging import loggify

from .base import ProtocolsDB, ServicesDB
from .errors import BackendKind
from .file_db import parse_protocol_entry, parse_service_entry
from .netdb_parser import NetDBParser

DATA_PACKAGE = "netdb.data"
ANY_PROTO_ORDER = ("tcp", "udp")  # Checked in order when no protocol is given


def open_data(name, *args, **kwargs):
    return NetDBParser(files(DATA_PACKAGE).joinpath(name).open("r", encoding="utf-8"), *args, **kwargs)


class IANADB(ABC):
    kind = BackendKind.BUILTIN
    TABLES = {}  # data file name -> built tables
    _lock = Lock()

    def __init__(self, data_file, *args, **kwargs):
        self.data_file = data_file
        with IANADB._lock:
            if (tables := IANADB.TABLES.get(data_file)) is None:
                tables = IANADB.TABLES[data_file] = self.build()
        self.tables = tables

    @classmethod
    def load(cls, config, *args, **kwargs):
        return cls(*args, **kwargs)

    @abstractmethod
    def build(self):
        """Parses the data file into lookup tables."""


@loggify
class IANAProtocolsDB(IANADB, ProtocolsDB):
    def __init__(self, data_file="protocols", *args, **kwargs):
        super().__init__(data_file, *args, **kwargs)

    def build(self):
        """Returns (name_to_proto, number_to_proto), aliases are added as names."""
        name_to_proto, number_to_proto = {}, {}
        with open_data(self.data_file, logger=self.logger) as parser:
            for entry in parser:
                if (protocol := parse_protocol_entry(entry)) is None:
                    self.logger.warning("[%s] Invalid protocol entry: %s", self.data_file, entry)
                    continue
                for name in protocol.names:
                    name_to_proto[name] = protocol
                number_to_proto[protocol.number] = protocol
        self.logger.debug("[%s] Loaded %d built-in protocols", self.data_file, len(number_to_proto))
        return name_to_proto, number_to_proto

    def get_protocol_by_name(self, name):
        return self.tables[0].get(name)

    def get_protocol_by_number(self, number):
        return self.tables[1].get(number)

    def get_all_protocols(self):
        return list(dict.fromkeys(chain(self.tables[0].values(), self.tables[1].values())))


@loggify
class IANAServicesDB(IANADB, ServicesDB):
    def __init__(self, data_file="services", *args, **kwargs):
        super().__init__(data_file, *args, **kwargs)

    def build(self):
        """Returns a dict of protocol -> (name_to_service, port_to_service)"""
        tables = {}
        with open_data(self.data_file, logger=self.logger) as parser:
            for entry in parser:
                if (service := parse_service_entry(entry)) is None:
                    self.logger.warning("[%s] Invalid service entry: %s", self.data_file, entry)
                    continue
                name_to_service, port_to_service = tables.setdefault(service.protocol, ({}, {}))
                for name in service.names:
                    name_to_service[name] = service
                port_to_service[service.port] = service
        self.logger.debug("[%s] Loaded built-in services for: %s", self.data_file, ", ".join(tables))
        return tables

    def _proto_tables(self, proto):
        if proto is None:
            return [self.tables[p] for p in ANY_PROTO_ORDER if p in self.tables]
        if proto in self.tables:
            return [self.tables[proto]]
        return []

    def get_service_by_name(self, name, proto=None):
        for name_to_service, _ in self._proto_tables(proto):
            if service := name_to_service.get(name):
                return service

    def get_service_by_port(self, port, proto=None):
        for _, port_to_service in self._proto_tables(proto):
            if service := port_to_service.get(port):
                return service

    def get_all_services(self):
        ordered = [p for p in ANY_PROTO_ORDER if p in self.tables] + [
            p for p in self.tables if p not in ANY_PROTO_ORDER
        ]
        services = chain.from_iterable(chain(*(d.values() for d in self.tables[p])) for p in ordered)
        return list(dict.fromkeys(services))
