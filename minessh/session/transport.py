"""SSH session transport for minessh.

Each connection runs an interactive shell channel. A reader thread per
session fans every chunk of stdout/stderr out to all subscribers, so the
automation loop and a terminal display see the same stream independently.
"""

import asyncio
import socket
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import paramiko

from ..utils.logging import logger

BUFFER_SIZE = 65535
CONNECT_TIMEOUT = 10.0
KEEPALIVE_INTERVAL = 30

DataCallback = Callable[[bytes], None]
ClosedCallback = Callable[[str], None]


class TransportError(Exception):
    """A session could not be opened, written to, or found."""


@dataclass
class _Connection:
    client: paramiko.SSHClient
    channel: paramiko.Channel
    name: str
    reader: Optional[threading.Thread] = None
    stop_event: threading.Event = field(default_factory=threading.Event)


class SSHTransport:
    """Owns the SSH connections and routes their output by session id."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 connect_timeout: float = CONNECT_TIMEOUT):
        """Initialize the transport.

        Args:
            loop: Event loop that data callbacks are marshalled onto. When
                None, callbacks run on the reader thread.
            connect_timeout: TCP/SSH handshake timeout in seconds
        """
        self.loop = loop
        self.connect_timeout = connect_timeout
        self._connections: Dict[str, _Connection] = {}
        self._subscribers: Dict[str, List[DataCallback]] = {}
        self._closed_callbacks: List[ClosedCallback] = []
        self._lock = threading.Lock()

    def connect(self, host: str, port: int, username: str,
                password: Optional[str] = None, key_filename: Optional[str] = None) -> str:
        """Open a shell on ``host`` and return the new session id.

        Blocking; call it from an executor when running inside an event loop.
        """
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=host,
                port=port,
                username=username,
                password=password,
                key_filename=key_filename,
                timeout=self.connect_timeout,
                allow_agent=password is None,
                look_for_keys=password is None and key_filename is None,
            )
            ssh_transport = client.get_transport()
            if ssh_transport:
                ssh_transport.set_keepalive(KEEPALIVE_INTERVAL)
            channel = client.invoke_shell()
            channel.settimeout(1.0)
        except (paramiko.SSHException, socket.error) as e:
            client.close()
            raise TransportError(f"Connection to {host}:{port} failed: {e}") from e

        session_id = uuid.uuid4().hex[:8]
        connection = _Connection(client=client, channel=channel, name=f"{username}@{host}")
        connection.reader = threading.Thread(
            target=self._read_loop, args=(session_id, connection), name=f"ssh-reader-{session_id}", daemon=True
        )
        with self._lock:
            self._connections[session_id] = connection
        connection.reader.start()

        logger.session(f"Connected {connection.name} (session {session_id})")
        return session_id

    def write(self, session_id: str, data: bytes) -> None:
        connection = self._get(session_id)
        if connection.channel.closed:
            raise TransportError(f"Session {session_id} is closed")
        try:
            connection.channel.sendall(data)
        except (socket.error, paramiko.SSHException) as e:
            raise TransportError(f"Write to session {session_id} failed: {e}") from e

    def resize(self, session_id: str, rows: int, cols: int) -> None:
        self._get(session_id).channel.resize_pty(width=cols, height=rows)

    def on_data(self, session_id: str, callback: DataCallback) -> Callable[[], None]:
        """Subscribe to a session's output. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(session_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(session_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def on_closed(self, callback: ClosedCallback) -> Callable[[], None]:
        self._closed_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._closed_callbacks:
                self._closed_callbacks.remove(callback)

        return unsubscribe

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    def disconnect(self, session_id: str) -> None:
        with self._lock:
            connection = self._connections.pop(session_id, None)
        if connection is None:
            return
        connection.stop_event.set()
        connection.client.close()
        logger.session(f"Disconnected session {session_id}")

    def _get(self, session_id: str) -> _Connection:
        with self._lock:
            connection = self._connections.get(session_id)
        if connection is None:
            raise TransportError(f"Unknown session: {session_id}")
        return connection

    def _read_loop(self, session_id: str, connection: _Connection) -> None:
        channel = connection.channel
        while not connection.stop_event.is_set():
            try:
                if channel.recv_stderr_ready():
                    self._dispatch(session_id, channel.recv_stderr(BUFFER_SIZE))
                data = channel.recv(BUFFER_SIZE)
            except socket.timeout:
                continue
            except (socket.error, paramiko.SSHException, EOFError) as e:
                logger.debug(f"Reader for session {session_id} stopped: {e}")
                break
            if not data:
                break
            self._dispatch(session_id, data)

        with self._lock:
            self._connections.pop(session_id, None)
            self._subscribers.pop(session_id, None)
        logger.session(f"Session {session_id} closed")
        for callback in list(self._closed_callbacks):
            self._call(callback, session_id)

    def _dispatch(self, session_id: str, data: bytes) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(session_id, []))
        for callback in callbacks:
            self._call(callback, data)

    def _call(self, callback, arg) -> None:
        if self.loop is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(callback, arg)
        else:
            callback(arg)


def create_ssh_transport(loop: Optional[asyncio.AbstractEventLoop] = None) -> SSHTransport:
    """Create an SSH transport that delivers data on ``loop``."""
    return SSHTransport(loop)
