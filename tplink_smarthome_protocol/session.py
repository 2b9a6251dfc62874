#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
TPLinkClient -- sends commands to a single TP-Link device over TCP and returns its replies.

Each TPLinkClient.send() performs one complete round trip on its own connection:

    connect -> cipher.encode -> send_frame -> recv_frame -> cipher.decode -> TPLinkResponse

TPLinkClient.connect() returns a TPLinkSession that keeps one connection open for several
round trips.
"""

from __future__ import annotations

import asyncio

from .internal_types import *
from .pkg_logging import logger
from .constants import TPLINK_PORT, DEFAULT_TIMEOUT
from .exceptions import TPLinkError, TPLinkConnectionError, TPLinkTimeoutError
from .message import TPLinkCommand, TPLinkResponse
from .framing import send_frame, recv_frame
from .util import parse_host_and_port, format_host_and_port
from . import cipher

_T = TypeVar('_T')

async def with_deadline(aw: Awaitable[_T], timeout_secs: Optional[float], what: str) -> _T:
    """Awaits aw, raising TPLinkTimeoutError if it has not completed within timeout_secs.
       A timeout_secs of None waits forever."""
    try:
        return await asyncio.wait_for(aw, timeout_secs)
    except TPLinkError:
        raise
    except asyncio.TimeoutError as e:
        raise TPLinkTimeoutError(f"Timed out {what}") from e

class TPLinkSession(AsyncContextManager['TPLinkSession']):
    """A single open TCP connection to a device.

    Usage:
        async with await client.connect() as session:
            response = await session.transact(get_sysinfo_command())
    """

    client: TPLinkClient
    reader: Optional[asyncio.StreamReader] = None
    writer: Optional[asyncio.StreamWriter] = None

    def __init__(self, client: TPLinkClient):
        self.client = client

    async def _async_dispose(self) -> None:
        writer = self.writer
        self.reader = None
        self.writer = None
        if writer is not None:
            logger.debug(f"Closing connection to {self.client}")
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Ignoring error while closing connection to {self.client}: {e}")

    async def __aenter__(self) -> TPLinkSession:
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[TracebackType]
          ) -> Optional[bool]:
        if exc_val is not None:
            logger.debug(f"Exiting session with {self.client} with exception: {exc_val!r}")
        await self._async_dispose()
        return False

    async def close(self) -> None:
        await self._async_dispose()

    @property
    def host(self) -> str:
        return self.client.host

    @property
    def port(self) -> int:
        return self.client.port

    @property
    def timeout_secs(self) -> Optional[float]:
        return self.client.timeout_secs

    @property
    def is_open(self) -> bool:
        return self.writer is not None

    @classmethod
    async def create(cls, client: TPLinkClient) -> TPLinkSession:
        self = cls(client)
        try:
            await self.open()
        except BaseException:
            await self._async_dispose()
            raise
        return self

    async def open(self) -> None:
        assert self.reader is None and self.writer is None
        logger.debug(f"Connecting to {self.client}")
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.timeout_secs)
        except asyncio.TimeoutError as e:
            raise TPLinkTimeoutError(f"Timed out connecting to {self.client}") from e
        except OSError as e:
            raise TPLinkConnectionError(f"Unable to connect to {self.client}: {e}") from e
        logger.debug(f"Connected to {self.client}")

    async def transact_raw(self, payload: bytes) -> bytes:
        """Sends one plaintext payload and returns the plaintext reply"""
        if self.reader is None or self.writer is None:
            raise TPLinkConnectionError(f"Session with {self.client} is not open")
        logger.debug(f"Sending to {self.client}: {payload!r}")
        try:
            reply = cipher.decode(await with_deadline(
                self._round_trip(self.reader, self.writer, cipher.encode(payload)),
                self.timeout_secs,
                f"waiting for reply from {self.client}"))
        except TPLinkError:
            await self._async_dispose()
            raise
        except OSError as e:
            await self._async_dispose()
            raise TPLinkConnectionError(f"Connection to {self.client} failed: {e}") from e
        except BaseException:
            # Cancelled; a partially read frame cannot be resynchronized
            await self._async_dispose()
            raise
        logger.debug(f"Received from {self.client}: {reply!r}")
        return reply

    @staticmethod
    async def _round_trip(reader: asyncio.StreamReader, writer: asyncio.StreamWriter, data: bytes) -> bytes:
        await send_frame(writer, data)
        return await recv_frame(reader)

    async def transact(self, command: TPLinkCommand) -> TPLinkResponse:
        """Sends a command and returns the parsed reply"""
        reply = await self.transact_raw(command.to_bytes())
        return TPLinkResponse.from_bytes(reply)

class TPLinkClient:
    """The address and timeout used to talk to one device. Holds no connection state."""

    host: str
    port: int
    timeout_secs: Optional[float]

    def __init__(
            self,
            host: str,
            port: int = TPLINK_PORT,
            timeout_secs: Optional[float] = DEFAULT_TIMEOUT
          ):
        self.host = host
        self.port = port
        self.timeout_secs = timeout_secs

    @classmethod
    def from_address(
            cls,
            address: Union[str, HostAndPort],
            timeout_secs: Optional[float] = DEFAULT_TIMEOUT
          ) -> TPLinkClient:
        """Creates a client from a "host[:port]" string or a (host, port) tuple"""
        if isinstance(address, str):
            address = parse_host_and_port(address)
        host, port = address
        return cls(host, port, timeout_secs=timeout_secs)

    @property
    def address(self) -> HostAndPort:
        return (self.host, self.port)

    async def connect(self) -> TPLinkSession:
        return await TPLinkSession.create(self)

    async def send(self, command: TPLinkCommand) -> TPLinkResponse:
        """Performs one round trip on a new connection. timeout_secs bounds the whole call,
           including the connect."""
        return await with_deadline(self._send(command), self.timeout_secs, f"sending to {self}")

    async def _send(self, command: TPLinkCommand) -> TPLinkResponse:
        async with await self.connect() as session:
            return await session.transact(command)

    def __str__(self) -> str:
        return format_host_and_port(self.address)

    def __repr__(self) -> str:
        return f"TPLinkClient(host={self.host}, port={self.port}, timeout_secs={self.timeout_secs})"

async def send(
        address: Union[str, HostAndPort],
        command: TPLinkCommand,
        timeout_secs: Optional[float] = DEFAULT_TIMEOUT
      ) -> TPLinkResponse:
    """Sends a single command to the device at address and returns its reply"""
    return await TPLinkClient.from_address(address, timeout_secs=timeout_secs).send(command)
