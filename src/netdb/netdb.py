"""
Chooses which backend answers protocol and service lookups.

Backends are probed in order, native -> file -> builtin, and the first one which loads is used
until the NetDB is discarded. Protocols and services are probed separately.
The builtin tables can't fail to load, so resolution always succeeds.
"""

from dataclasses import dataclass
from enum import Enum
from threading import RLock

from zenlib.logging import loggify
from zenlib.util import colorize

from .config import NetDBConfig, load_config
from .errors import BackendKind, BackendUnavailable, UnavailableReason
from .file_db import FileProtocolsDB, FileServicesDB
from .iana_db import IANAProtocolsDB, IANAServicesDB
from .native_db import NativeProtocolsDB, NativeServicesDB

PROTOCOL_BACKENDS = {
    BackendKind.NATIVE: NativeProtocolsDB,
    BackendKind.FILE: FileProtocolsDB,
    BackendKind.BUILTIN: IANAProtocolsDB,
}

SERVICE_BACKENDS = {
    BackendKind.NATIVE: NativeServicesDB,
    BackendKind.FILE: FileServicesDB,
    BackendKind.BUILTIN: IANAServicesDB,
}


class ResolverState(Enum):
    UNRESOLVED = "unresolved"
    PROBING = "probing"
    BOUND = "bound"


@dataclass(frozen=True)
class ProbeResult:
    database: str  # "protocols" or "services"
    kind: BackendKind
    db: object = None
    error: BackendUnavailable = None

    @property
    def available(self):
        return self.error is None

    @property
    def reason(self):
        return self.error.reason if self.error else None

    def __str__(self):
        if self.available:
            return f"[{self.database}] {colorize(self.kind.value, 'green')}: available"
        return f"[{self.database}] {self.error}"


@loggify
class NetDB:
    """Resolves protocols and services through the first working backend.

    Nothing is probed until resolve() is called or the first lookup is made.
    Once bound, the chosen backends are never re-probed.
    """

    def __init__(self, config=None, config_file=None, *args, **kwargs):
        if config is None:
            config = load_config(config_file, logger=self.logger) if config_file else NetDBConfig()
        self.config = config
        self.state = ResolverState.UNRESOLVED
        self.probes = []
        self.protocols_db = None
        self.services_db = None
        self._lock = RLock()

    def probe(self, database, backends):
        """Tries each backend in the configured order, returns the first one which loads.
        The builtin backend is the final fallback, even if it wasn't configured."""
        order = list(self.config.backends)
        for kind in backends:
            if kind not in order:
                if kind != BackendKind.BUILTIN:
                    self.probes.append(
                        ProbeResult(database, kind, error=BackendUnavailable(kind, UnavailableReason.DISABLED))
                    )
                    continue
                order.append(kind)

        for kind in order:
            try:
                db = backends[kind].load(self.config, logger=self.logger)
            except BackendUnavailable as e:
                result = ProbeResult(database, kind, error=e)
                self.probes.append(result)
                self.logger.debug("Backend unavailable: %s", result)
                continue
            self.probes.append(ProbeResult(database, kind, db=db))
            self.logger.info("[%s] Using backend: %s", database, colorize(kind.value, "green"))
            return db
        raise RuntimeError(f"No {database} backend could be loaded: {[str(p) for p in self.probes]}")

    def resolve(self):
        """Probes the backends if that hasn't happened yet. Safe to call from several threads."""
        if self.state == ResolverState.BOUND:
            return self
        with self._lock:
            if self.state != ResolverState.UNRESOLVED:
                return self
            self.state = ResolverState.PROBING
            try:
                protocols_db = self.probe("protocols", PROTOCOL_BACKENDS)
                services_db = self.probe("services", SERVICE_BACKENDS)
            except BaseException:
                self.state = ResolverState.UNRESOLVED
                raise
            self.protocols_db, self.services_db = protocols_db, services_db
            self.state = ResolverState.BOUND
        return self

    def get_protocol_by_name(self, name):
        return self.resolve().protocols_db.get_protocol_by_name(name)

    def get_protocol_by_number(self, number):
        return self.resolve().protocols_db.get_protocol_by_number(number)

    def get_all_protocols(self):
        return self.resolve().protocols_db.get_all_protocols()

    def get_service_by_name(self, name, proto=None):
        return self.resolve().services_db.get_service_by_name(name, proto)

    def get_service_by_port(self, port, proto=None):
        return self.resolve().services_db.get_service_by_port(port, proto)

    def get_all_services(self):
        return self.resolve().services_db.get_all_services()

    def __str__(self):
        if self.state != ResolverState.BOUND:
            return f"NetDB({self.state.value}, config={self.config})"
        return f"NetDB(protocols={self.protocols_db.kind.value}, services={self.services_db.kind.value})"
