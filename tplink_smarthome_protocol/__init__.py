#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package tplink_smarthome_protocol implements the local-network "smarthome" protocol spoken by
TP-Link Kasa smart plugs, power strips and bulbs.

Commands and replies are JSON objects obfuscated with a simple autokey XOR cipher. Devices
accept commands on TCP port 9999, where each message is preceded by a 4-byte big-endian
length, and answer a UDP broadcast of the same ciphered JSON (without the length prefix)
on port 9999, which is used for discovery.

The protocol is not publicly documented by TP-Link; it has been reverse-engineered by
several open source projects. It is unauthenticated and the cipher provides no real
confidentiality.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import (
    TPLinkError,
    TPLinkConnectionError,
    TPLinkTimeoutError,
    TruncatedFrameError,
    MalformedResponseError,
    UnexpectedShapeError,
    DeviceResponseError,
    OutOfRangeError,
  )

from .constants import TPLINK_PORT, DEFAULT_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT
from .datatypes import SysInfo, SysInfoChild, LightState, EmeterRealtime
from .message import TPLinkCommand, TPLinkResponse
from .session import TPLinkClient, TPLinkSession, send
from .capabilities import (
    DeviceActions,
    SystemInfo,
    Switch,
    MultiSwitch,
    Light,
    Dimmer,
    ColorTemperature,
    Colour,
    EnergyMeter,
  )
from .devices import (
    DeviceVariant,
    TPLinkDevice,
    UnknownDevice,
    HS100, HS103, HS105, HS110, HS300, KP115, LB110, LB120, KL110,
    from_sysinfo,
    connect,
    get_capability,
  )
from .discovery import (
    TPLinkDiscoveryClient,
    TPLinkDiscoveryRequest,
    DiscoveryResponseInfo,
    DatagramChannel,
    UdpDatagramChannel,
    discover,
  )

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'TPLinkError', 'TPLinkConnectionError', 'TPLinkTimeoutError', 'TruncatedFrameError',
    'MalformedResponseError', 'UnexpectedShapeError', 'DeviceResponseError', 'OutOfRangeError',
    'TPLINK_PORT', 'DEFAULT_TIMEOUT', 'DEFAULT_DISCOVERY_TIMEOUT',
    'SysInfo', 'SysInfoChild', 'LightState', 'EmeterRealtime',
    'TPLinkCommand', 'TPLinkResponse',
    'TPLinkClient', 'TPLinkSession', 'send',
    'DeviceActions', 'SystemInfo', 'Switch', 'MultiSwitch', 'Light', 'Dimmer', 'ColorTemperature', 'Colour', 'EnergyMeter',
    'DeviceVariant', 'TPLinkDevice', 'UnknownDevice',
    'HS100', 'HS103', 'HS105', 'HS110', 'HS300', 'KP115', 'LB110', 'LB120', 'KL110',
    'from_sysinfo', 'connect', 'get_capability',
    'TPLinkDiscoveryClient', 'TPLinkDiscoveryRequest', 'DiscoveryResponseInfo',
    'DatagramChannel', 'UdpDatagramChannel', 'discover',
]
