import argparse
import asyncio
import logging
import os
import sys
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .envelope import SignalingEnvelope, envelope_from_string, envelope_to_string
from .exceptions import OperationError, SignalingClosedError

if TYPE_CHECKING:
    from .engine import NegotiationEngine

logger = logging.getLogger(__name__)


def decode_envelope(data: str) -> Optional[SignalingEnvelope]:
    try:
        return envelope_from_string(data)
    except OperationError as exc:
        logger.warning("Dropping malformed signaling message: %s", exc)
        return None


class BaseSignaling(ABC):
    """
    A duplex conduit for :class:`SignalingEnvelope` objects.

    Envelopes sent through one adapter are delivered in order. The adapter
    does not look inside the envelopes' data.
    """

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def send(self, envelope: SignalingEnvelope) -> None:
        """
        Send one envelope to the remote peer.

        :raises SignalingClosedError: if the channel is closed.
        """

    @abstractmethod
    async def receive(self) -> Optional[SignalingEnvelope]:
        """
        Receive the next envelope, or `None` once the channel is closed.
        """

    async def messages(self) -> AsyncIterator[SignalingEnvelope]:
        """
        Iterate over received envelopes until the channel closes.

        Calling this again after :meth:`connect` resumes with the new
        connection.
        """
        while True:
            envelope = await self.receive()
            if envelope is None:
                return
            yield envelope


class QueueSignaling(BaseSignaling):
    """
    One end of an in-process channel, see :func:`queue_signaling_pair`.
    """

    def __init__(
        self,
        rx_queue: asyncio.Queue[Optional[str]],
        tx_queue: asyncio.Queue[Optional[str]],
    ) -> None:
        self._closed = False
        self._rx_queue = rx_queue
        self._tx_queue = tx_queue

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._rx_queue.put(None)
            await self._tx_queue.put(None)

    async def receive(self) -> Optional[SignalingEnvelope]:
        while not self._closed:
            data = await self._rx_queue.get()
            if data is None:
                self._closed = True
                break
            envelope = decode_envelope(data)
            if envelope is not None:
                return envelope
        return None

    async def send(self, envelope: SignalingEnvelope) -> None:
        if self._closed:
            raise SignalingClosedError("Signaling channel is closed")
        await self._tx_queue.put(envelope_to_string(envelope))


def queue_signaling_pair() -> tuple[QueueSignaling, QueueSignaling]:
    """
    Create two connected :class:`QueueSignaling`, for peers living in the
    same event loop.
    """
    queue_a: asyncio.Queue[Optional[str]] = asyncio.Queue()
    queue_b: asyncio.Queue[Optional[str]] = asyncio.Queue()
    return (
        QueueSignaling(rx_queue=queue_a, tx_queue=queue_b),
        QueueSignaling(rx_queue=queue_b, tx_queue=queue_a),
    )


class StreamSignaling(BaseSignaling):
    """
    Newline-delimited JSON envelopes over an asyncio stream. One peer listens,
    the other one connects.
    """

    def __init__(self, server: bool) -> None:
        self._is_server = server
        self._server: Optional[asyncio.Server] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self) -> None:
        if self._writer is not None:
            return

        if self._is_server:
            connected = asyncio.Event()

            def client_connected(
                reader: asyncio.StreamReader, writer: asyncio.StreamWriter
            ) -> None:
                self._reader = reader
                self._writer = writer
                connected.set()

            self._server = await self._start_server(client_connected)
            await connected.wait()
        else:
            self._reader, self._writer = await self._open_connection()

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._reader = None
            self._writer = None
        if self._server is not None:
            self._server.close()
            self._server = None

    async def receive(self) -> Optional[SignalingEnvelope]:
        while self._reader is not None:
            try:
                data = await self._reader.readuntil()
            except (asyncio.IncompleteReadError, ConnectionError):
                return None
            envelope = decode_envelope(data.decode("utf8"))
            if envelope is not None:
                return envelope
        return None

    async def send(self, envelope: SignalingEnvelope) -> None:
        if self._writer is None or self._writer.is_closing():
            raise SignalingClosedError("Signaling channel is closed")

        data = envelope_to_string(envelope).encode("utf8")
        try:
            self._writer.write(data + b"\n")
            await self._writer.drain()
        except ConnectionError as exc:
            raise SignalingClosedError(f"Signaling channel lost: {exc}") from exc

    @abstractmethod
    async def _open_connection(
        self,
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]: ...

    @abstractmethod
    async def _start_server(self, client_connected) -> asyncio.Server: ...


class TcpSocketSignaling(StreamSignaling):
    def __init__(self, host: str, port: int, server: bool = False) -> None:
        super().__init__(server=server)
        self._host = host
        self._port = port

    async def _open_connection(
        self,
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.open_connection(host=self._host, port=self._port)

    async def _start_server(self, client_connected) -> asyncio.Server:
        return await asyncio.start_server(
            client_connected, host=self._host, port=self._port
        )


class UnixSocketSignaling(StreamSignaling):
    def __init__(self, path: str, server: bool = False) -> None:
        super().__init__(server=server)
        self._path = path

    async def close(self) -> None:
        listening = self._server is not None
        await super().close()
        # In Python 3.13, asyncio Unix sockets are removed when the server is
        # closed. On previous version we need to remove the socket ourselves.
        if listening and sys.version_info < (3, 13) and os.path.exists(self._path):
            os.unlink(self._path)

    async def _open_connection(
        self,
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.open_unix_connection(self._path)

    async def _start_server(self, client_connected) -> asyncio.Server:
        return await asyncio.start_unix_server(client_connected, path=self._path)


class WebSocketSignaling(BaseSignaling):
    """
    Envelopes as text messages over a WebSocket, typically to a relay server
    forwarding each message to the other peers.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._websocket = None

    async def connect(self) -> None:
        if self._websocket is None:
            self._websocket = await websockets.connect(self._url)

    async def close(self) -> None:
        if self._websocket is not None:
            await self._websocket.close()
            self._websocket = None

    async def receive(self) -> Optional[SignalingEnvelope]:
        while self._websocket is not None:
            try:
                data = await self._websocket.recv()
            except ConnectionClosed:
                return None
            if isinstance(data, bytes):
                data = data.decode("utf8")
            envelope = decode_envelope(data)
            if envelope is not None:
                return envelope
        return None

    async def send(self, envelope: SignalingEnvelope) -> None:
        if self._websocket is None:
            raise SignalingClosedError("Signaling channel is closed")

        try:
            await self._websocket.send(envelope_to_string(envelope))
        except ConnectionClosed as exc:
            raise SignalingClosedError(f"Signaling channel lost: {exc}") from exc


async def relay(signaling: BaseSignaling, engine: "NegotiationEngine") -> None:
    """
    Feed the envelopes received on `signaling` to `engine` until the channel
    closes, then close the engine.
    """
    try:
        async for envelope in signaling.messages():
            await engine.submitRemoteEnvelope(envelope)
        logger.info("Signaling channel closed, ending session")
    finally:
        await engine.close()


def add_signaling_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add signaling method arguments to an argparse.ArgumentParser.
    """
    parser.add_argument(
        "--signaling",
        "-s",
        choices=["tcp-socket", "unix-socket", "websocket"],
        default="websocket",
    )
    parser.add_argument(
        "--signaling-host", default="127.0.0.1", help="Signaling host (tcp-socket only)"
    )
    parser.add_argument(
        "--signaling-port",
        default=1234,
        type=int,
        help="Signaling port (tcp-socket only)",
    )
    parser.add_argument(
        "--signaling-path",
        default="aionegotiate.socket",
        help="Signaling socket path (unix-socket only)",
    )
    parser.add_argument(
        "--signaling-server",
        action="store_true",
        help="Wait for the remote peer to connect (tcp-socket and unix-socket only)",
    )
    parser.add_argument(
        "--signaling-url",
        default="ws://localhost:7001/ws",
        help="Signaling server URL (websocket only)",
    )


def create_signaling(args: argparse.Namespace) -> BaseSignaling:
    """
    Create a signaling method based on command-line arguments.
    """
    if args.signaling == "tcp-socket":
        return TcpSocketSignaling(
            args.signaling_host, args.signaling_port, server=args.signaling_server
        )
    elif args.signaling == "unix-socket":
        return UnixSocketSignaling(args.signaling_path, server=args.signaling_server)
    else:
        return WebSocketSignaling(args.signaling_url)
