#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Read-only typed views over the JSON objects returned by TP-Link devices.
"""

from __future__ import annotations

from dataclasses import dataclass

from .internal_types import *
from .exceptions import UnexpectedShapeError

class _JsonView(Mapping[str, Jsonable]):
    """A read-only Mapping over a JSON object with typed field getters."""

    _data: JsonableDict

    def __init__(self, data: Mapping[str, Jsonable]):
        if not isinstance(data, Mapping):
            raise UnexpectedShapeError(f"{self.__class__.__name__}: expected a JSON object, got {type(data).__name__}")
        self._data = dict(data)

    def __getitem__(self, key: str) -> Jsonable:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, _JsonView):
            return False
        return self._data == other._data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"

    @property
    def data(self) -> JsonableDict:
        """A copy of the underlying JSON object"""
        return dict(self._data)

    def _first(self, *names: str) -> Jsonable:
        for name in names:
            if name in self._data:
                return self._data[name]
        return None

    def _str(self, *names: str) -> Optional[str]:
        result = self._first(*names)
        if not isinstance(result, str):
            return None
        return result

    def _int(self, *names: str) -> Optional[int]:
        result = self._first(*names)
        if isinstance(result, bool) or not isinstance(result, int):
            return None
        return result

    def _float(self, *names: str) -> Optional[float]:
        result = self._first(*names)
        if isinstance(result, bool) or not isinstance(result, (int, float)):
            return None
        return float(result)

    def _flag(self, *names: str) -> bool:
        return self._int(*names) == 1

    def _required_str(self, name: str) -> str:
        result = self._str(name)
        if result is None:
            raise UnexpectedShapeError(f"{self.__class__.__name__}: missing string field '{name}'")
        return result

class LightState(_JsonView):
    """The state of a smart bulb.

    When the bulb is on the mode/hue/saturation/color_temp/brightness fields are reported
    inline; when it is off they are reported in a nested "dft_on_state" object (the state the
    bulb will return to when switched on). The accessors below read whichever is present.
    """

    @property
    def on_off(self) -> Optional[int]:
        return self._int("on_off")

    @property
    def is_on(self) -> bool:
        on_off = self.on_off
        if on_off is None:
            raise UnexpectedShapeError("LightState: missing field 'on_off'")
        return on_off == 1

    @property
    def dft_on_state(self) -> Optional[JsonableDict]:
        result = self._data.get("dft_on_state")
        if not isinstance(result, dict):
            return None
        return result

    def _state_int(self, name: str) -> int:
        value = self._data.get(name)
        if value is None:
            dft = self.dft_on_state
            if dft is not None:
                value = dft.get(name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise UnexpectedShapeError(f"LightState: missing integer field '{name}'")
        return value

    @property
    def mode(self) -> Optional[str]:
        result = self._str("mode")
        if result is None and self.dft_on_state is not None:
            dft_mode = self.dft_on_state.get("mode")
            if isinstance(dft_mode, str):
                result = dft_mode
        return result

    @property
    def hue(self) -> int:
        return self._state_int("hue")

    @property
    def saturation(self) -> int:
        return self._state_int("saturation")

    @property
    def color_temp(self) -> int:
        return self._state_int("color_temp")

    @property
    def brightness(self) -> int:
        return self._state_int("brightness")

class SysInfoChild(_JsonView):
    """One outlet of a multi-outlet power strip, as reported in SysInfo.children"""

    @property
    def id(self) -> str:
        return self._required_str("id")

    @property
    def alias(self) -> Optional[str]:
        return self._str("alias")

    @property
    def is_on(self) -> bool:
        state = self._int("state")
        if state is None:
            raise UnexpectedShapeError("SysInfoChild: missing field 'state'")
        return state > 0

    @property
    def on_time(self) -> Optional[int]:
        return self._int("on_time")

class SysInfo(_JsonView):
    """The device's self-reported identity and feature metadata (the system.get_sysinfo
       result).

    Plugs and bulbs use different names for some fields ("type" vs "mic_type", "mac" vs
    "mic_mac", "dev_name" vs "description"); both are accepted. alias and model are always
    reported by real devices and raise UnexpectedShapeError if missing. Other getters
    return None if the field is absent or has an unexpected type.
    """

    @property
    def alias(self) -> str:
        return self._required_str("alias")

    @property
    def model(self) -> str:
        return self._required_str("model")

    @property
    def hw_type(self) -> Optional[str]:
        """e.g. "IOT.SMARTPLUGSWITCH" or "IOT.SMARTBULB" """
        return self._str("type", "mic_type", "hw_type")

    @property
    def sw_ver(self) -> Optional[str]:
        return self._str("sw_ver")

    @property
    def hw_ver(self) -> Optional[str]:
        return self._str("hw_ver")

    @property
    def mac(self) -> Optional[str]:
        return self._str("mac", "mic_mac")

    @property
    def device_id(self) -> Optional[str]:
        return self._str("deviceId")

    @property
    def hw_id(self) -> Optional[str]:
        return self._str("hwId")

    @property
    def oem_id(self) -> Optional[str]:
        return self._str("oemId")

    @property
    def fw_id(self) -> Optional[str]:
        return self._str("fwId")

    @property
    def dev_name(self) -> Optional[str]:
        return self._str("dev_name", "description")

    @property
    def rssi(self) -> Optional[int]:
        return self._int("rssi")

    @property
    def active_mode(self) -> Optional[str]:
        return self._str("active_mode")

    @property
    def feature(self) -> Optional[str]:
        """Colon-separated feature codes, e.g. "TIM:ENE" """
        return self._str("feature")

    @property
    def features(self) -> List[str]:
        feature = self.feature
        if feature is None or feature == '':
            return []
        return feature.split(':')

    @property
    def has_emeter(self) -> bool:
        return "ENE" in self.features

    @property
    def relay_state(self) -> Optional[int]:
        return self._int("relay_state")

    @property
    def on_time(self) -> Optional[int]:
        return self._int("on_time")

    @property
    def led_off(self) -> Optional[bool]:
        result = self._int("led_off")
        return None if result is None else result == 1

    @property
    def updating(self) -> Optional[bool]:
        result = self._int("updating")
        return None if result is None else result == 1

    @property
    def location(self) -> Optional[Tuple[float, float]]:
        """(latitude, longitude). Older firmware reports "latitude_i"/"longitude_i" instead;
           those values are returned as-is."""
        latitude = self._float("latitude")
        longitude = self._float("longitude")
        if latitude is None or longitude is None:
            latitude = self._float("latitude_i")
            longitude = self._float("longitude_i")
        if latitude is None or longitude is None:
            return None
        return (latitude, longitude)

    @property
    def children(self) -> Optional[List[SysInfoChild]]:
        result = self._data.get("children")
        if not isinstance(result, list):
            return None
        return [SysInfoChild(child) for child in result]

    @property
    def child_num(self) -> Optional[int]:
        return self._int("child_num")

    @property
    def light_state(self) -> Optional[LightState]:
        result = self._data.get("light_state")
        if not isinstance(result, dict):
            return None
        return LightState(result)

    @property
    def is_dimmable(self) -> bool:
        return self._flag("is_dimmable")

    @property
    def is_color(self) -> bool:
        return self._flag("is_color")

    @property
    def is_variable_color_temp(self) -> bool:
        return self._flag("is_variable_color_temp")

    @property
    def err_code(self) -> Optional[int]:
        return self._int("err_code")

@dataclass
class EmeterRealtime:
    """A realtime energy meter reading.

    power is in W, voltage in V, current in A, total in kWh. Fields not reported by the
    device are None.
    """
    power: Optional[float] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    total: Optional[float] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Jsonable]) -> EmeterRealtime:
        """Builds a reading from either the plain (V, A, W, kWh) fields reported by
           first-generation hardware or the milli-unit fields (voltage_mv, current_ma,
           power_mw, total_wh) reported by later hardware."""
        def get(name: str, milli_name: str) -> Optional[float]:
            value = data.get(name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
            value = data.get(milli_name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value) / 1000.0
            return None

        result = cls(
            power=get("power", "power_mw"),
            voltage=get("voltage", "voltage_mv"),
            current=get("current", "current_ma"),
            total=get("total", "total_wh"),
          )
        if result.power is None and result.voltage is None and result.current is None and result.total is None:
            raise UnexpectedShapeError(f"No energy meter readings in {dict(data)!r}")
        return result
