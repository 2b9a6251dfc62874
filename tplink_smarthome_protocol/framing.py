#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Framing of ciphered payloads for the two transports used by TP-Link devices.

TCP: every message in either direction is a frame of the form

    <4-byte big-endian payload length> <payload>

UDP: the datagram itself is the frame; there is no length prefix.
"""

from __future__ import annotations

import asyncio
import struct

from .internal_types import *
from .pkg_logging import logger
from .constants import FRAME_HEADER_SIZE, MAX_FRAME_LENGTH
from .exceptions import TruncatedFrameError, MalformedResponseError, TPLinkTimeoutError
from . import cipher

_HEADER = struct.Struct('>I')

def pack_frame(payload: bytes) -> bytes:
    """Prepends the 4-byte big-endian length prefix to a payload"""
    return _HEADER.pack(len(payload)) + payload

def unpack_frame(data: bytes) -> bytes:
    """Extracts the payload from a complete frame held in a buffer.

    Raises TruncatedFrameError if the buffer holds less than the declared length.
    Bytes beyond the declared length are ignored.
    """
    if len(data) < FRAME_HEADER_SIZE:
        raise TruncatedFrameError(f"Frame header truncated: got {len(data)} of {FRAME_HEADER_SIZE} bytes")
    length = _HEADER.unpack_from(data)[0]
    payload = data[FRAME_HEADER_SIZE:FRAME_HEADER_SIZE + length]
    if len(payload) < length:
        raise TruncatedFrameError(f"Frame payload truncated: got {len(payload)} of {length} bytes")
    return payload

async def send_frame(
        writer: asyncio.StreamWriter,
        payload: bytes,
        timeout_secs: Optional[float]=None
      ) -> None:
    """Writes one length-prefixed frame to a stream and waits for it to drain."""
    data = pack_frame(payload)
    logger.debug(f"Writing frame of {len(payload)} bytes")
    writer.write(data)
    try:
        await asyncio.wait_for(writer.drain(), timeout_secs)
    except asyncio.TimeoutError as e:
        raise TPLinkTimeoutError(f"Timed out writing {len(data)}-byte frame") from e

async def _read_exactly(reader: asyncio.StreamReader, length: int, what: str, timeout_secs: Optional[float]) -> bytes:
    try:
        return await asyncio.wait_for(reader.readexactly(length), timeout_secs)
    except asyncio.IncompleteReadError as e:
        raise TruncatedFrameError(
            f"Connection closed after {len(e.partial)} of {length} {what} bytes") from e
    except asyncio.TimeoutError as e:
        raise TPLinkTimeoutError(f"Timed out waiting for {length} {what} bytes") from e

async def recv_frame(
        reader: asyncio.StreamReader,
        timeout_secs: Optional[float]=None
      ) -> bytes:
    """Reads exactly one length-prefixed frame from a stream and returns its payload.

    Never returns a short buffer: if the stream ends before the declared number of
    bytes has arrived, TruncatedFrameError is raised and the partial data is discarded.
    timeout_secs bounds each of the header and payload reads.
    """
    header = await _read_exactly(reader, FRAME_HEADER_SIZE, "header", timeout_secs)
    length = _HEADER.unpack(header)[0]
    if length > MAX_FRAME_LENGTH:
        raise MalformedResponseError(f"Declared frame length {length} exceeds maximum of {MAX_FRAME_LENGTH}")
    payload = await _read_exactly(reader, length, "payload", timeout_secs)
    logger.debug(f"Read frame of {length} bytes")
    return payload

def encode_datagram(payload: bytes) -> bytes:
    """Ciphers a plaintext payload for sending as a UDP datagram (no length prefix)"""
    return cipher.encode(payload)

def decode_datagram(data: bytes) -> bytes:
    """Deciphers a received UDP datagram. The datagram is the whole ciphertext; no
       length prefix is stripped."""
    return cipher.decode(data)
