#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Device handles for the supported TP-Link models.

A device handle binds an address to a device class. The class is chosen once, from the
model identifier in the device's SysInfo, and determines which capability interfaces
(see capabilities.py) are available. Handles own no connection; every operation performs
its own round trips through a TPLinkClient.
"""

from __future__ import annotations

from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .constants import TPLINK_PORT, DEFAULT_TIMEOUT
from .datatypes import SysInfo
from .message import TPLinkCommand, TPLinkResponse, get_sysinfo_command
from .session import TPLinkClient
from .util import parse_host_and_port, format_host_and_port
from .capabilities import (
    DeviceActions,
    SystemInfo,
    Switch,
    RelaySwitch,
    LightSwitch,
    MultiSwitch,
    Light,
    Dimmer,
    ColorTemperature,
    Colour,
    EnergyMeter,
  )

class DeviceVariant(Enum):
    """The device models recognized by this package"""
    HS100 = "HS100"
    HS103 = "HS103"
    HS105 = "HS105"
    HS110 = "HS110"
    HS300 = "HS300"
    KP115 = "KP115"
    LB110 = "LB110"
    LB120 = "LB120"
    KL110 = "KL110"
    UNKNOWN = "Unknown"

CAPABILITIES: Tuple[Type[DeviceActions], ...] = (
    SystemInfo,
    Switch,
    MultiSwitch,
    Light,
    Dimmer,
    ColorTemperature,
    Colour,
    EnergyMeter,
  )
"""The public capability interfaces"""

_C = TypeVar('_C', bound=DeviceActions)

class TPLinkDevice(SystemInfo):
    """Base class for all device handles. Supports SystemInfo queries only."""

    variant: ClassVar[DeviceVariant] = DeviceVariant.UNKNOWN
    description: ClassVar[str] = "device"

    client: TPLinkClient

    def __init__(
            self,
            host: str,
            port: int = TPLINK_PORT,
            timeout_secs: Optional[float] = DEFAULT_TIMEOUT,
            client: Optional[TPLinkClient] = None,
            sysinfo: Optional[SysInfo] = None,
          ):
        """Creates a handle for the device at host:port. The caller is responsible for making
           sure the device is of this class; use connect() or from_sysinfo() to choose the
           class from the device's model."""
        if client is None:
            client = TPLinkClient(host, port, timeout_secs=timeout_secs)
        self.client = client
        self.last_sysinfo = sysinfo

    @property
    def host(self) -> str:
        return self.client.host

    @property
    def port(self) -> int:
        return self.client.port

    @property
    def address(self) -> HostAndPort:
        return (self.client.host, self.client.port)

    async def send(self, command: TPLinkCommand) -> TPLinkResponse:
        return await self.client.send(command)

    @classmethod
    def supports(cls, capability: Type[DeviceActions]) -> bool:
        return issubclass(cls, capability)

    @classmethod
    def capabilities(cls) -> List[Type[DeviceActions]]:
        """The public capability interfaces implemented by this class"""
        return [cap for cap in CAPABILITIES if issubclass(cls, cap)]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({format_host_and_port(self.address)})"

    def __repr__(self) -> str:
        return str(self)

class UnknownDevice(TPLinkDevice):
    """A device whose model is not recognized"""
    pass

class HS100(TPLinkDevice, RelaySwitch):
    """HS100 smart plug"""
    variant = DeviceVariant.HS100
    description = "smart plug"

class HS103(TPLinkDevice, RelaySwitch):
    """HS103 smart plug"""
    variant = DeviceVariant.HS103
    description = "smart plug"

class HS105(TPLinkDevice, RelaySwitch):
    """HS105 smart plug"""
    variant = DeviceVariant.HS105
    description = "smart plug"

class HS110(TPLinkDevice, RelaySwitch, EnergyMeter):
    """HS110 smart plug with energy monitoring"""
    variant = DeviceVariant.HS110
    description = "smart plug with energy monitoring"

class KP115(TPLinkDevice, RelaySwitch, EnergyMeter):
    """KP115 smart plug with energy monitoring"""
    variant = DeviceVariant.KP115
    description = "smart plug with energy monitoring"

class HS300(TPLinkDevice, MultiSwitch, EnergyMeter):
    """HS300 smart power strip with six individually switched outlets"""
    variant = DeviceVariant.HS300
    description = "smart power strip"

class LB110(TPLinkDevice, LightSwitch, Dimmer):
    """LB110 dimmable smart bulb"""
    variant = DeviceVariant.LB110
    description = "dimmable smart bulb"
    default_brightness_range = (1, 100)

class KL110(TPLinkDevice, LightSwitch, Dimmer):
    """KL110 dimmable smart bulb"""
    variant = DeviceVariant.KL110
    description = "dimmable smart bulb"
    default_brightness_range = (1, 100)

class LB120(TPLinkDevice, LightSwitch, Dimmer, ColorTemperature):
    """LB120 tunable-white smart bulb"""
    variant = DeviceVariant.LB120
    description = "tunable white smart bulb"
    default_color_temp_range = (2700, 6500)

DEVICE_CLASSES: Dict[DeviceVariant, Type[TPLinkDevice]] = {
    DeviceVariant.HS100: HS100,
    DeviceVariant.HS103: HS103,
    DeviceVariant.HS105: HS105,
    DeviceVariant.HS110: HS110,
    DeviceVariant.HS300: HS300,
    DeviceVariant.KP115: KP115,
    DeviceVariant.LB110: LB110,
    DeviceVariant.LB120: LB120,
    DeviceVariant.KL110: KL110,
    DeviceVariant.UNKNOWN: UnknownDevice,
  }

def variant_from_model(model: str) -> DeviceVariant:
    """Matches a model identifier such as "HS110(US)" against the known models"""
    for variant in DeviceVariant:
        if variant is not DeviceVariant.UNKNOWN and variant.value in model:
            return variant
    return DeviceVariant.UNKNOWN

def variant_from_sysinfo(sysinfo: SysInfo) -> DeviceVariant:
    return variant_from_model(sysinfo.model)

def from_sysinfo(
        address: Union[str, HostAndPort],
        sysinfo: SysInfo,
        timeout_secs: Optional[float] = DEFAULT_TIMEOUT,
        client: Optional[TPLinkClient] = None,
      ) -> TPLinkDevice:
    """Creates a handle of the class matching the model reported in sysinfo.

    Raises UnexpectedShapeError if sysinfo does not include the model.
    """
    if isinstance(address, str):
        address = parse_host_and_port(address)
    host, port = address
    variant = variant_from_sysinfo(sysinfo)
    device_class = DEVICE_CLASSES[variant]
    logger.debug(f"Model {sysinfo.model!r} at {format_host_and_port(address)} is {variant.value}")
    return device_class(host, port, timeout_secs=timeout_secs, client=client, sysinfo=sysinfo)

async def connect(
        address: Union[str, HostAndPort],
        timeout_secs: Optional[float] = DEFAULT_TIMEOUT,
      ) -> TPLinkDevice:
    """Queries the device at address for its sysinfo and returns a handle of the matching class"""
    client = TPLinkClient.from_address(address, timeout_secs=timeout_secs)
    sysinfo = (await client.send(get_sysinfo_command())).sysinfo()
    return from_sysinfo(client.address, sysinfo, timeout_secs=timeout_secs, client=client)

def get_capability(device: DeviceActions, capability: Type[_C]) -> Optional[_C]:
    """Returns device viewed as the capability interface, or None if it does not support it"""
    if isinstance(device, capability):
        return device
    return None
