#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Capability interfaces implemented by TP-Link device classes.

Each capability is an abstract mixin built on DeviceActions.send(). A device class inherits
exactly the capabilities its hardware supports, so isinstance(device, Dimmer) (or
device.supports(Dimmer)) is the runtime test for whether an operation is available.

Range-checked operations raise OutOfRangeError before anything is sent to the device.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .constants import SYSTEM_NAMESPACE, EMETER_NAMESPACE
from .exceptions import OutOfRangeError, UnexpectedShapeError, DeviceResponseError
from .datatypes import SysInfo, SysInfoChild, LightState, EmeterRealtime
from .message import (
    TPLinkCommand,
    TPLinkResponse,
    get_sysinfo_command,
    set_relay_state_command,
    set_dev_alias_command,
    reboot_command,
    get_light_state_command,
    transition_light_state_command,
    emeter_realtime_command,
    emeter_daystat_command,
    emeter_monthstat_command,
  )

BRIGHTNESS_RANGES: Dict[str, Tuple[int, int]] = {
    "LB110": (1, 100),
    "KL110": (1, 100),
    "LB120": (0, 100),
  }
"""Supported brightness percentages, by model identifier prefix"""

COLOR_TEMP_RANGES: Dict[str, Tuple[int, int]] = {
    "LB120": (2700, 6500),
    "LB130": (2500, 9000),
    "LB230": (2500, 9000),
    "KL120": (2700, 5000),
    "KL130": (2500, 9000),
  }
"""Supported color temperatures in kelvin, by model identifier prefix"""

def _lookup_model_range(
        table: Mapping[str, Tuple[int, int]],
        model: Optional[str],
        default: Tuple[int, int]
      ) -> Tuple[int, int]:
    if model is not None:
        for prefix, value_range in table.items():
            if prefix in model:
                return value_range
    return default

def _check_range(name: str, value: int, value_range: Tuple[int, int]) -> None:
    min_value, max_value = value_range
    if not (min_value <= value <= max_value):
        raise OutOfRangeError(f"{name} must be between {min_value} and {max_value}: {value}")

async def _set_checked_light_state(light: Light, name: str, **state: Jsonable) -> None:
    """Sends a range-checked light transition. A device that rejects the values anyway
       raises OutOfRangeError."""
    try:
        await light.set_light_state(**state)
    except DeviceResponseError as e:
        raise OutOfRangeError(f"Device rejected {name} {state}: {e}") from e

class DeviceActions(ABC):
    """The primitive shared by all capabilities: send a command to the device and return its reply."""

    @abstractmethod
    async def send(self, command: TPLinkCommand) -> TPLinkResponse:
        raise NotImplementedError()

    @property
    def reported_model(self) -> Optional[str]:
        """The model identifier last reported by the device, if known"""
        return None

class SystemInfo(DeviceActions):
    """Identity and housekeeping operations. Supported by all devices."""

    last_sysinfo: Optional[SysInfo] = None
    """The SysInfo most recently received from the device, if any"""

    @property
    def reported_model(self) -> Optional[str]:
        if self.last_sysinfo is None:
            return None
        try:
            return self.last_sysinfo.model
        except UnexpectedShapeError:
            return None

    async def sysinfo(self) -> SysInfo:
        response = await self.send(get_sysinfo_command())
        result = response.sysinfo()
        self.last_sysinfo = result
        return result

    async def alias(self) -> str:
        return (await self.sysinfo()).alias

    async def set_alias(self, alias: str) -> None:
        response = await self.send(set_dev_alias_command(alias))
        response.check(SYSTEM_NAMESPACE, "set_dev_alias")

    async def location(self) -> Tuple[float, float]:
        """(latitude, longitude) as reported by the device"""
        result = (await self.sysinfo()).location
        if result is None:
            raise UnexpectedShapeError("Complete coordinates not found in sysinfo")
        return result

    async def reboot(self, delay_secs: int=1) -> None:
        response = await self.send(reboot_command(delay_secs))
        response.check(SYSTEM_NAMESPACE, "reboot")

class Switch(DeviceActions):
    """A device that can be switched on and off as a whole"""

    @abstractmethod
    async def is_on(self) -> bool:
        raise NotImplementedError()

    @abstractmethod
    async def switch(self, on: bool) -> None:
        raise NotImplementedError()

    async def is_off(self) -> bool:
        return not await self.is_on()

    async def switch_on(self) -> None:
        await self.switch(True)

    async def switch_off(self) -> None:
        await self.switch(False)

    async def toggle(self) -> bool:
        """Switches the device to the opposite state. Returns the new state."""
        on = not await self.is_on()
        await self.switch(on)
        return on

class RelaySwitch(Switch, SystemInfo):
    """A Switch implemented with the relay of a smart plug"""

    async def is_on(self) -> bool:
        relay_state = (await self.sysinfo()).relay_state
        if relay_state is None:
            raise UnexpectedShapeError("No relay state in sysinfo")
        return relay_state > 0

    async def switch(self, on: bool) -> None:
        logger.debug(f"Switching relay {'on' if on else 'off'}")
        response = await self.send(set_relay_state_command(on))
        response.check(SYSTEM_NAMESPACE, "set_relay_state")

class MultiSwitch(SystemInfo):
    """A power strip whose outlets are switched individually. Outlets are numbered from 0."""

    async def children(self) -> List[SysInfoChild]:
        result = (await self.sysinfo()).children
        if result is None:
            raise UnexpectedShapeError("No children in sysinfo")
        return result

    async def _child(self, index: int) -> Tuple[SysInfo, SysInfoChild]:
        sysinfo = await self.sysinfo()
        children = sysinfo.children
        if children is None:
            raise UnexpectedShapeError("No children in sysinfo")
        if not (0 <= index < len(children)):
            raise OutOfRangeError(f"Invalid outlet index {index}; device has {len(children)} outlets")
        return (sysinfo, children[index])

    async def outlet_count(self) -> int:
        return len(await self.children())

    async def is_on(self, index: int) -> bool:
        _, child = await self._child(index)
        return child.is_on

    async def is_off(self, index: int) -> bool:
        return not await self.is_on(index)

    async def switch(self, index: int, on: bool) -> None:
        if index < 0:
            raise OutOfRangeError(f"Invalid outlet index {index}")
        sysinfo, child = await self._child(index)
        device_id = sysinfo.device_id
        if device_id is None:
            raise UnexpectedShapeError("No deviceId in sysinfo")
        child_id = f"{device_id}{index:02}"
        logger.debug(f"Switching outlet {index} ({child.alias!r}) {'on' if on else 'off'}")
        response = await self.send(set_relay_state_command(on).with_context([child_id]))
        response.check(SYSTEM_NAMESPACE, "set_relay_state")

    async def switch_on(self, index: int) -> None:
        await self.switch(index, True)

    async def switch_off(self, index: int) -> None:
        await self.switch(index, False)

    async def toggle(self, index: int) -> bool:
        """Switches an outlet to the opposite state. Returns the new state."""
        on = not await self.is_on(index)
        await self.switch(index, on)
        return on

class Light(DeviceActions):
    """A smart bulb"""

    async def get_light_state(self) -> LightState:
        response = await self.send(get_light_state_command())
        return response.light_state()

    async def set_light_state(self, **state: Jsonable) -> LightState:
        """Low level transition to a new light state with no validation; e.g.,
           set_light_state(on_off=1, brightness=50). Returns the new state."""
        response = await self.send(transition_light_state_command(**state))
        return response.light_state("transition_light_state")

class LightSwitch(Switch, Light):
    """A Switch implemented with the on_off field of a bulb's light state"""

    async def is_on(self) -> bool:
        return (await self.get_light_state()).is_on

    async def switch(self, on: bool) -> None:
        logger.debug(f"Switching light {'on' if on else 'off'}")
        await self.set_light_state(on_off=1 if on else 0)

class Dimmer(Light):
    """A bulb with adjustable brightness (percent)"""

    default_brightness_range: ClassVar[Tuple[int, int]] = (0, 100)

    def brightness_range(self) -> Tuple[int, int]:
        return _lookup_model_range(BRIGHTNESS_RANGES, self.reported_model, self.default_brightness_range)

    async def brightness(self) -> int:
        return (await self.get_light_state()).brightness

    async def set_brightness(self, brightness: int) -> None:
        _check_range("Brightness", brightness, self.brightness_range())
        await _set_checked_light_state(self, "brightness", brightness=brightness)

class ColorTemperature(Light):
    """A tunable-white bulb with adjustable color temperature (kelvin)"""

    default_color_temp_range: ClassVar[Tuple[int, int]] = (2700, 6500)

    def color_temp_range(self) -> Tuple[int, int]:
        return _lookup_model_range(COLOR_TEMP_RANGES, self.reported_model, self.default_color_temp_range)

    async def color_temp(self) -> int:
        return (await self.get_light_state()).color_temp

    async def set_color_temp(self, kelvin: int) -> None:
        _check_range("Color temperature", kelvin, self.color_temp_range())
        await _set_checked_light_state(self, "color temperature", color_temp=kelvin)

class Colour(Light):
    """A full color bulb, controlled by hue, saturation and value (brightness)"""

    hue_range: ClassVar[Tuple[int, int]] = (0, 360)
    saturation_range: ClassVar[Tuple[int, int]] = (0, 100)
    value_range: ClassVar[Tuple[int, int]] = (0, 100)

    async def get_hsv(self) -> Tuple[int, int, int]:
        light_state = await self.get_light_state()
        return (light_state.hue, light_state.saturation, light_state.brightness)

    async def set_hsv(self, hue: int, saturation: int, value: int) -> None:
        _check_range("Hue", hue, self.hue_range)
        _check_range("Saturation", saturation, self.saturation_range)
        _check_range("Brightness", value, self.value_range)
        # color_temp 0 selects color mode
        await _set_checked_light_state(
            self, "color", hue=hue, saturation=saturation, brightness=value, color_temp=0)

class EnergyMeter(DeviceActions):
    """A device with a power/energy meter"""

    emeter_namespace: ClassVar[str] = EMETER_NAMESPACE

    async def emeter_realtime(self) -> EmeterRealtime:
        response = await self.send(emeter_realtime_command(self.emeter_namespace))
        return response.emeter_realtime(self.emeter_namespace)

    async def emeter_daily(self, year: int, month: int) -> List[JsonableDict]:
        """Per-day statistics for a month. Each entry has "year", "month", "day" and an energy
           field ("energy" or "energy_wh", depending on hardware version)."""
        response = await self.send(emeter_daystat_command(self.emeter_namespace, year, month))
        return self._stat_list(response.result(self.emeter_namespace, "get_daystat"), "day_list")

    async def emeter_monthly(self, year: int) -> List[JsonableDict]:
        """Per-month statistics for a year"""
        response = await self.send(emeter_monthstat_command(self.emeter_namespace, year))
        return self._stat_list(response.result(self.emeter_namespace, "get_monthstat"), "month_list")

    @staticmethod
    def _stat_list(result: JsonableDict, name: str) -> List[JsonableDict]:
        stat_list = result.get(name)
        if not isinstance(stat_list, list):
            raise UnexpectedShapeError(f"No '{name}' in energy meter statistics")
        return [entry for entry in stat_list if isinstance(entry, dict)]
