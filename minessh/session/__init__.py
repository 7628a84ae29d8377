"""Remote shell sessions for minessh."""

from .transport import SSHTransport, TransportError, create_ssh_transport

__all__ = [
    "SSHTransport",
    "TransportError",
    "create_ssh_transport",
]
