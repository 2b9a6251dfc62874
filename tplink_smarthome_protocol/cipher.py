#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
The autokey XOR cipher used to obfuscate TP-Link smart home protocol payloads.

Each ciphertext byte is the XOR of the plaintext byte with the previous ciphertext
byte; the first plaintext byte is XORed with INITIAL_KEY (0xAB). The same recurrence
decodes, except that the key for the next byte is the ciphertext byte just consumed.

See https://www.softscheck.com/en/reverse-engineering-tp-link-hs110/
"""

from __future__ import annotations

import json

from .internal_types import *
from .constants import INITIAL_KEY

def encode(plaintext: bytes, initial_key: int=INITIAL_KEY) -> bytes:
    """Encodes plaintext bytes. decode(encode(x)) == x for all x."""
    key = initial_key
    result = bytearray(len(plaintext))
    for i, b in enumerate(plaintext):
        key ^= b
        result[i] = key
    return bytes(result)

def decode(ciphertext: bytes, initial_key: int=INITIAL_KEY) -> bytes:
    """Decodes ciphertext bytes produced by encode()."""
    key = initial_key
    result = bytearray(len(ciphertext))
    for i, b in enumerate(ciphertext):
        result[i] = b ^ key
        key = b
    return bytes(result)

def to_json_bytes(obj: Jsonable) -> bytes:
    """Serializes a JSON value to the compact UTF-8 form expected by devices."""
    return json.dumps(obj, separators=(',', ':')).encode('utf-8')

def encode_json(obj: Jsonable) -> bytes:
    """Serializes and encodes a JSON value."""
    return encode(to_json_bytes(obj))

def decode_json(data: bytes) -> Jsonable:
    """Decodes ciphertext and parses the plaintext as JSON.

    Raises UnicodeDecodeError or json.JSONDecodeError if the plaintext is not valid UTF-8 JSON.
    """
    return json.loads(decode(data).decode('utf-8'))
