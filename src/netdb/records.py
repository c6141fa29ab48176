"""
Protocol and service records returned by every backend.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Protocol:
    """An IP protocol, such as tcp (6) or udp (17)."""

    name: str
    number: int
    aliases: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "aliases", tuple(self.aliases))

    @property
    def names(self):
        return (self.name, *self.aliases)

    def __str__(self):
        return f"{self.name}\t{self.number}\t{' '.join(self.aliases)}".rstrip()


@dataclass(frozen=True)
class Service:
    """A network service, identified by its port and transport protocol."""

    name: str
    port: int
    protocol: str
    aliases: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "aliases", tuple(self.aliases))

    @property
    def names(self):
        return (self.name, *self.aliases)

    def __str__(self):
        """
        Formats the service like an /etc/services line:
            {name}\t{port}/{protocol}\t{aliases}
        """
        return f"{self.name}\t{self.port}/{self.protocol}\t{' '.join(self.aliases)}".rstrip()
