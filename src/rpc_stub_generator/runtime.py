"""Runtime support for generated message, client and server modules.

Generated modules import from here, so everything in this module is part of the contract
between the generator and the code it writes.
"""

from __future__ import annotations

from typing import Any, Protocol, Self

from pydantic import BaseModel, ConfigDict, model_validator

# Byte count of the big-endian length prefix that precedes every frame on the wire.
LENGTH_PREFIX_SIZE = 8


class RpcError(Exception):
    """Base class for communication errors raised by generated clients and servers."""

    pass


class ConnectionRefused(RpcError):
    """Raised when a connection to a server cannot be established."""

    def __init__(self, host: str, port: int):
        super().__init__(f"Connection to {host}:{port} was refused.")
        self.host = host
        self.port = port


class WriteFailed(RpcError):
    """Raised when a frame could not be written to the connection."""

    pass


class ReadFailed(RpcError):
    """Raised when no complete frame could be read from the connection."""

    pass


class BadReturnType(RpcError):
    """Raised when a response answers a different function than the one that was called."""

    pass


class Connection(Protocol):
    """A bidirectional connection that exchanges length-prefixed frames."""

    def write_framed(self, data: bytes) -> bool:
        """Write one frame. Returns False if the frame could not be written."""
        ...

    def read_framed(self) -> bytes | None:
        """Block until one frame was read. Returns None on end of stream or failure."""
        ...

    def close(self) -> None:
        """Release the connection. Reads and writes fail afterwards."""
        ...


class Listener(Protocol):
    """A source of incoming connections."""

    def accept(self) -> Connection:
        """Block until a connection arrives. Raises if the listener can no longer accept."""
        ...


class TaggedUnion(BaseModel):
    """A value that is exactly one of a fixed set of named cases.

    Subclasses declare one optional field per case. A case without payload is annotated `None`:

        class EchoRequest(TaggedUnion):
            ping: None = None
            add: Add | None = None

    A value is created by passing exactly one case, e.g. `EchoRequest(ping=None)` or
    `EchoRequest(add=Add(x=2, y=3))`, and is encoded as a JSON object whose only key is the
    case name: `{"ping": null}`, `{"add": {"x": 2, "y": 3}}`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    @model_validator(mode="after")
    def check_single_case(self) -> Self:
        if len(self.model_fields_set) != 1:
            found = ", ".join(sorted(self.model_fields_set)) or "none"
            raise ValueError(f"{type(self).__name__} needs exactly one case, found: {found}")

        return self

    def which(self) -> str:
        """The name of the active case."""
        (case,) = self.model_fields_set
        return case

    def payload(self) -> Any:
        """The value carried by the active case, None for bare cases."""
        return getattr(self, self.which())

    def to_bytes(self) -> bytes:
        """Serialize to UTF-8 encoded JSON."""
        return self.model_dump_json(exclude_unset=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Deserialize from UTF-8 encoded JSON.

        Raises:
            pydantic.ValidationError: If `data` is not a valid encoding of this union.
        """
        return cls.model_validate_json(data)
