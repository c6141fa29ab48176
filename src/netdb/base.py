"""
Lookup contracts shared by the native, file, and built-in backends.
Lookups return None when nothing matches, they don't raise.
"""

from abc import ABC, abstractmethod


class ProtocolsDB(ABC):
    kind = None  # BackendKind

    @classmethod
    @abstractmethod
    def load(cls, config, *args, **kwargs):
        """Returns a usable instance, raises BackendUnavailable otherwise."""

    @abstractmethod
    def get_protocol_by_name(self, name):
        pass

    @abstractmethod
    def get_protocol_by_number(self, number):
        pass

    @abstractmethod
    def get_all_protocols(self):
        pass


class ServicesDB(ABC):
    kind = None  # BackendKind

    @classmethod
    @abstractmethod
    def load(cls, config, *args, **kwargs):
        """Returns a usable instance, raises BackendUnavailable otherwise."""

    @abstractmethod
    def get_service_by_name(self, name, proto=None):
        """A proto of None matches any transport protocol."""

    @abstractmethod
    def get_service_by_port(self, port, proto=None):
        """A proto of None matches any transport protocol."""

    @abstractmethod
    def get_all_services(self):
        pass
