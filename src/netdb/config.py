from dataclasses import dataclass, field, fields
from os import environ
from platform import system
from tomllib import load

from .errors import BackendKind

DEFAULT_BACKENDS = (BackendKind.NATIVE, BackendKind.FILE, BackendKind.BUILTIN)
DEFAULT_NATIVE_BUFFER_SIZE = 4096  # Initial scratch buffer for reentrant native lookups
DEFAULT_SYSTEM_ROOT = "C:\\windows"


def windows_etc_dir():
    system_root = environ.get("SystemRoot") or DEFAULT_SYSTEM_ROOT
    return f"{system_root}\\system32\\drivers\\etc"


def default_protocols_file():
    if system() == "Windows":
        return f"{windows_etc_dir()}\\protocol"
    return "/etc/protocols"


def default_services_file():
    if system() == "Windows":
        return f"{windows_etc_dir()}\\services"
    return "/etc/services"


def parse_backends(backends):
    """Converts a list of backend names into BackendKinds, raises ValueError on unknown names."""
    kinds = []
    for backend in backends:
        if isinstance(backend, BackendKind):
            kinds.append(backend)
            continue
        try:
            kinds.append(BackendKind(str(backend).lower()))
        except ValueError:
            raise ValueError(f"Unknown backend: {backend}, must be one of: {[kind.value for kind in BackendKind]}")
    return tuple(kinds)


@dataclass
class NetDBConfig:
    protocols_file: str = field(default_factory=default_protocols_file)
    services_file: str = field(default_factory=default_services_file)
    backends: tuple = DEFAULT_BACKENDS
    native_buffer_size: int = DEFAULT_NATIVE_BUFFER_SIZE

    def __post_init__(self):
        self.backends = parse_backends(self.backends)
        if self.native_buffer_size <= 0:
            raise ValueError(f"native_buffer_size must be positive: {self.native_buffer_size}")


def load_config(config_file, logger=None):
    """Reads a TOML config file into a NetDBConfig.
    Keys match the NetDBConfig attributes; unknown keys are ignored."""
    with open(config_file, "rb") as f:
        raw_config = load(f)

    kwargs = {}
    for attr in [f.name for f in fields(NetDBConfig)]:
        if (value := raw_config.pop(attr, None)) is not None:
            if logger:
                logger.info(f"[{attr}] Setting from config: {value}")
            kwargs[attr] = value

    if raw_config and logger:
        logger.warning(f"[{config_file}] Unused config options: {raw_config}")

    return NetDBConfig(**kwargs)
