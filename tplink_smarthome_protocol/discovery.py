#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
TPLinkDiscoveryClient -- discovers TP-Link smart home devices on the local network:

  1. Broadcasts a single discovery query datagram to UDP port 9999 on each local broadcast address
  2. Receives and decodes the reply datagrams sent back by each device
  3. Collects and returns the replies received within a configurable time window, keyed by source address
"""

from __future__ import annotations

import asyncio
import socket
import time
import datetime
from abc import ABC, abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .constants import TPLINK_PORT, DEFAULT_DISCOVERY_TIMEOUT, DEFAULT_TIMEOUT, MAX_DATAGRAM_SIZE
from .exceptions import TPLinkError
from .message import TPLinkResponse, discovery_query_command
from .datatypes import SysInfo
from .framing import encode_datagram, decode_datagram
from .devices import TPLinkDevice, from_sysinfo
from .util import get_broadcast_addresses

MAX_QUEUE_SIZE = 1000

BroadcastTargetResolver = Callable[[], List[str]]
"""A function that returns the IP addresses to which discovery queries are sent"""

class DatagramChannel(AsyncContextManager['DatagramChannel'], ABC):
    """An abstract datagram endpoint used by discovery. Entering the context opens it; exiting closes it."""

    @abstractmethod
    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        raise NotImplementedError()

    @abstractmethod
    async def receive(self) -> Optional[Tuple[bytes, HostAndPort]]:
        """Waits for the next datagram. Returns None once the channel is closed."""
        raise NotImplementedError()

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.close()
        return False

ChannelFactory = Callable[[], DatagramChannel]
"""A function that creates a new, unopened DatagramChannel"""

class _UdpChannelProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and UdpDatagramChannel"""
    channel: UdpDatagramChannel

    def __init__(self, channel: UdpDatagramChannel):
        self.channel = channel

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.channel.on_datagram(data, (addr[0], addr[1]))

    def error_received(self, exc: Exception) -> None:
        # ICMP unreachable replies from hosts that are not devices; not fatal to discovery
        logger.debug(f"Ignoring datagram error on {self.channel}: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.channel.on_end_of_stream(exc)

class UdpDatagramChannel(DatagramChannel):
    """A broadcast-enabled UDP socket bound to an ephemeral local port, with a queue of received datagrams."""

    bind_address: str
    """The local IP address to bind to. "" binds to all interfaces."""

    max_datagram_size: int
    """Received datagrams longer than this are dropped"""

    queue: asyncio.Queue[Optional[Tuple[bytes, HostAndPort]]]
    transport: Optional[asyncio.DatagramTransport] = None
    eos: bool = False
    eos_exc: Optional[Exception] = None

    def __init__(
            self,
            bind_address: str="",
            max_queue_size: int=MAX_QUEUE_SIZE,
            max_datagram_size: int=MAX_DATAGRAM_SIZE
          ):
        self.bind_address = bind_address
        self.max_datagram_size = max_datagram_size
        self.queue = asyncio.Queue(max_queue_size)

    async def open(self) -> None:
        assert self.transport is None
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.bind_address, 0))
            untyped_transport, _ = await loop.create_datagram_endpoint(
                lambda: _UdpChannelProtocol(self),
                sock=sock
              )
        except BaseException:
            sock.close()
            raise
        # asyncio datagram transports do not inherit from asyncio.DatagramTransport
        self.transport = untyped_transport # type: ignore[assignment]
        logger.debug(f"Opened {self}")

    async def close(self) -> None:
        transport = self.transport
        self.transport = None
        if transport is not None:
            logger.debug(f"Closing {self}")
            transport.close()
        self.on_end_of_stream()

    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        assert self.transport is not None
        logger.debug(f"Sending {len(data)}-byte datagram via {self} to {addr}")
        self.transport.sendto(data, addr)

    def on_datagram(self, data: bytes, addr: HostAndPort) -> None:
        if len(data) > self.max_datagram_size:
            logger.debug(f"Dropping oversized {len(data)}-byte datagram from {addr} on {self}")
            return
        if not self.eos:
            try:
                self.queue.put_nowait((data, addr))
            except asyncio.QueueFull:
                logger.warning(f"Queue full, dropping datagram from {addr} on {self}")

    def on_end_of_stream(self, exc: Optional[Exception]=None) -> None:
        if not self.eos:
            self.eos = True
            self.eos_exc = exc
            try:
                # wake up any waiting tasks
                self.queue.put_nowait(None)
            except asyncio.QueueFull:
                pass

    async def receive(self) -> Optional[Tuple[bytes, HostAndPort]]:
        if self.eos and self.queue.empty():
            if self.eos_exc is not None:
                raise self.eos_exc
            return None
        result = await self.queue.get()
        self.queue.task_done()
        if result is None and self.eos_exc is not None:
            raise self.eos_exc
        return result

    def __str__(self) -> str:
        sockname = None
        if self.transport is not None:
            sockname = self.transport.get_extra_info('sockname')
        return f"UdpDatagramChannel({sockname})"

    def __repr__(self) -> str:
        return str(self)

class DiscoveryResponseInfo:
    src_addr: HostAndPort
    """The source address of the reply"""

    response: TPLinkResponse
    """The complete decoded reply to the discovery query"""

    sysinfo: SysInfo
    """The system.get_sysinfo result within the reply"""

    monotonic_time: float
    """The local time (in seconds) since an arbitrary point in the past at which
       the reply was received, as returned by time.monotonic()."""

    utc_time: datetime.datetime
    """The UTC time at which the reply was received."""

    def __init__(self, src_addr: HostAndPort, response: TPLinkResponse, sysinfo: SysInfo) -> None:
        self.src_addr = src_addr
        self.response = response
        self.sysinfo = sysinfo
        self.monotonic_time = time.monotonic()
        self.utc_time = datetime.datetime.now(datetime.timezone.utc)

    @property
    def host(self) -> str:
        return self.src_addr[0]

    def device(self, port: int=TPLINK_PORT, timeout_secs: Optional[float]=DEFAULT_TIMEOUT) -> TPLinkDevice:
        """Creates a device handle for the responder. Devices accept TCP commands on the same
           port they answered discovery on."""
        return from_sysinfo((self.host, port), self.sysinfo, timeout_secs=timeout_secs)

    def __str__(self) -> str:
        return f"DiscoveryResponseInfo(src_addr={self.src_addr}, alias={self.sysinfo.get('alias')!r}, model={self.sysinfo.get('model')!r})"

    def __repr__(self) -> str:
        return str(self)

def parse_discovery_reply(data: bytes, src_addr: HostAndPort) -> Optional[DiscoveryResponseInfo]:
    """Decodes one reply datagram. Returns None (after logging) if it is not a well-formed
       reply carrying a system.get_sysinfo object."""
    try:
        response = TPLinkResponse.from_bytes(decode_datagram(data))
        sysinfo = response.sysinfo()
    except TPLinkError as e:
        logger.debug(f"Skipping malformed discovery reply from {src_addr}: {e}")
        return None
    return DiscoveryResponseInfo(src_addr, response, sysinfo)

class TPLinkDiscoveryRequest(
        AsyncContextManager['TPLinkDiscoveryRequest'],
        AsyncIterable[DiscoveryResponseInfo]
      ):
    """An object that manages a single discovery broadcast and all of the received replies
       within an AsyncContextManager/AsyncIterable interface."""

    discovery_client: TPLinkDiscoveryClient
    channel: DatagramChannel
    response_wait_time: float
    max_responses: int
    end_time: float = 0.0

    def __init__(
            self,
            discovery_client: TPLinkDiscoveryClient,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ):
        """Create an async context manager/iterable that broadcasts a discovery query and returns the replies
        as they arrive.

        Parameters:
            discovery_client:        The TPLinkDiscoveryClient that supplies the channel, port and broadcast targets.
            response_wait_time:      The amount of time (in seconds) to wait for replies to come in. Defaults to
                                        discovery_client.response_wait_time.
            max_responses:           The maximum number of replies to return. If 0 (the default), all replies received
                                        within response_wait_time will be returned.

        Usage:
            async with TPLinkDiscoveryRequest(discovery_client, ...) as request:
                async for info in request:
                    print(info.src_addr, info.sysinfo.alias)
        """
        self.discovery_client = discovery_client
        self.response_wait_time = discovery_client.response_wait_time if response_wait_time is None else response_wait_time
        self.max_responses = max_responses
        self.channel = discovery_client.channel_factory()

    async def __aenter__(self) -> TPLinkDiscoveryRequest:
        # Open the channel before sending so that no early replies are missed
        await self.channel.__aenter__()
        try:
            query = encode_datagram(discovery_query_command().to_bytes())
            targets = self.discovery_client.broadcast_resolver()
            logger.debug(f"Broadcasting discovery query to {targets} port {self.discovery_client.port}")
            for target in targets:
                try:
                    self.channel.sendto(query, (target, self.discovery_client.port))
                except OSError as e:
                    logger.warning(f"Unable to send discovery query to {target}: {e}")
            self.end_time = time.monotonic() + self.response_wait_time
        except BaseException as e:
            # __aexit__ is not called when __aenter__ raises
            await self.channel.__aexit__(type(e), e, e.__traceback__)
            raise
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        return await self.channel.__aexit__(exc_type, exc, tb)

    async def iter_responses(self) -> AsyncIterator[DiscoveryResponseInfo]:
        n = 0
        while True:
            if self.max_responses > 0 and n >= self.max_responses:
                break
            remaining_time = self.end_time - time.monotonic()
            if remaining_time <= 0.0:
                break
            try:
                resp_tuple = await asyncio.wait_for(self.channel.receive(), remaining_time)
            except asyncio.TimeoutError:
                break
            if resp_tuple is None:
                break
            data, addr = resp_tuple
            info = parse_discovery_reply(data, addr)
            if info is not None:
                logger.debug(f"Received discovery reply: {info}")
                n += 1
                yield info

    def __aiter__(self) -> AsyncIterator[DiscoveryResponseInfo]:
        return self.iter_responses()

class TPLinkDiscoveryClient:
    """Configuration for discovering TP-Link devices, and methods that perform discovery."""

    response_wait_time: float
    """The amount of time (in seconds) to wait for all replies to come in. By default,
       this is set to 3.0 seconds."""

    port: int
    """The UDP port to which discovery queries are sent."""

    broadcast_resolver: BroadcastTargetResolver
    """Returns the addresses to which the query is broadcast. By default, the broadcast
       address of each local IPv4 interface."""

    channel_factory: ChannelFactory
    """Creates the datagram channel used by each search."""

    def __init__(
            self,
            response_wait_time: float=DEFAULT_DISCOVERY_TIMEOUT,
            port: int=TPLINK_PORT,
            broadcast_resolver: Optional[BroadcastTargetResolver]=None,
            channel_factory: Optional[ChannelFactory]=None,
            bind_address: str="",
          ) -> None:
        self.response_wait_time = response_wait_time
        self.port = port
        self.broadcast_resolver = get_broadcast_addresses if broadcast_resolver is None else broadcast_resolver
        if channel_factory is None:
            channel_factory = lambda: UdpDatagramChannel(bind_address=bind_address)
        self.channel_factory = channel_factory

    def search(
            self,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ) -> TPLinkDiscoveryRequest:
        """Create an async context manager/iterable that broadcasts a discovery query and returns the replies
           as they arrive. A device that replies more than once is yielded more than once.

        Usage:
            async with discovery_client.search(...) as request:
                async for info in request:
                    print(info.src_addr, info.sysinfo.alias)
                    # It is possible to break out of the loop early if desired
        """
        return TPLinkDiscoveryRequest(
                self,
                response_wait_time=response_wait_time,
                max_responses=max_responses,
              )

    async def simple_search(
            self,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ) -> List[DiscoveryResponseInfo]:
        """A simple search that waits for a fixed time for all replies to come in,
           and returns them in the order received, including duplicates.

           Early out/incremental results can be obtained by using the search() method.
        """
        results: List[DiscoveryResponseInfo] = []
        async with self.search(
                response_wait_time=response_wait_time,
                max_responses=max_responses,
              ) as request:
            async for info in request:
                results.append(info)
        return results

    async def discover(
            self,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ) -> Dict[HostAndPort, DiscoveryResponseInfo]:
        """Returns one entry per responding address. If an address replies more than once, the last reply wins."""
        results: Dict[HostAndPort, DiscoveryResponseInfo] = {}
        for info in await self.simple_search(response_wait_time=response_wait_time, max_responses=max_responses):
            results[info.src_addr] = info
        return results

async def discover(
        timeout: float=DEFAULT_DISCOVERY_TIMEOUT,
        port: int=TPLINK_PORT,
        broadcast_resolver: Optional[BroadcastTargetResolver]=None,
        channel_factory: Optional[ChannelFactory]=None,
        max_responses: int=0,
      ) -> Dict[HostAndPort, DiscoveryResponseInfo]:
    """Discovers the devices on the local network. Blocks for the full timeout (unless max_responses
       is reached) and returns the replies keyed by source address."""
    client = TPLinkDiscoveryClient(
        response_wait_time=timeout,
        port=port,
        broadcast_resolver=broadcast_resolver,
        channel_factory=channel_factory,
      )
    return await client.discover(max_responses=max_responses)
