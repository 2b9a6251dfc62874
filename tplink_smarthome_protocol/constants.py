#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

TPLINK_PORT = 9999
"""The TCP and UDP port number on which TP-Link smart home devices listen."""

TPLINK_BROADCAST_ADDRESS = "255.255.255.255"
"""The limited broadcast address used for discovery when no interface broadcast address is known."""

INITIAL_KEY = 0xAB
"""The initial key state of the autokey XOR cipher (171)."""

FRAME_HEADER_SIZE = 4
"""Size of the big-endian length prefix that precedes each TCP frame."""

MAX_FRAME_LENGTH = 1024 * 1024
"""The largest TCP frame payload that will be accepted from a device."""

MAX_DATAGRAM_SIZE = 4096
"""The largest UDP discovery reply that will be accepted; larger datagrams are dropped."""

DEFAULT_TIMEOUT = 5.0
"""The default per-call timeout (in seconds) for connecting to and receiving a reply from a device."""

DEFAULT_DISCOVERY_TIMEOUT = 3.0
"""The default amount of time (in seconds) to collect discovery replies."""

SYSTEM_NAMESPACE = "system"
EMETER_NAMESPACE = "emeter"
SMARTLIFE_EMETER_NAMESPACE = "smartlife.iot.common.emeter"
DIMMER_NAMESPACE = "smartlife.iot.dimmer"
LIGHT_SERVICE_NAMESPACE = "smartlife.iot.smartbulb.lightingservice"
