#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Captured device replies and a stub client shared by the tests"""

from __future__ import annotations

import copy

import pytest

from tplink_smarthome_protocol.internal_types import *
from tplink_smarthome_protocol import TPLinkCommand, TPLinkResponse

NOT_SUPPORTED: JsonableDict = {"err_code": -1, "err_msg": "module not support"}

HS100_OFF: JsonableDict = {
    "system": {
        "get_sysinfo": {
            "sw_ver": "1.5.8 Build 180815 Rel.135935",
            "hw_ver": "2.1",
            "type": "IOT.SMARTPLUGSWITCH",
            "model": "HS100(UK)",
            "mac": "00:00:00:00:00:00",
            "dev_name": "Smart Wi-Fi Plug",
            "alias": "Switch Two",
            "relay_state": 0,
            "on_time": 0,
            "active_mode": "none",
            "feature": "TIM",
            "updating": 0,
            "icon_hash": "",
            "rssi": -53,
            "led_off": 0,
            "longitude_i": 123,
            "latitude_i": 3456,
            "hwId": "00000000000000000000000000000000",
            "fwId": "00000000000000000000000000000000",
            "deviceId": "0000000000000000000000000000000000000000",
            "oemId": "FDD18403D5E8DB3613009C820963E018",
            "next_action": {"type": -1},
            "ntc_state": 0,
            "err_code": 0,
        },
    },
    "emeter": {"get_realtime": dict(NOT_SUPPORTED)},
    "smartlife.iot.dimmer": dict(NOT_SUPPORTED),
    "smartlife.iot.common.emeter": dict(NOT_SUPPORTED),
    "smartlife.iot.smartbulb.lightingservice": dict(NOT_SUPPORTED),
}

HS110: JsonableDict = {
    "system": {
        "get_sysinfo": {
            "err_code": 0,
            "sw_ver": "1.2.5 Build 171213 Rel.095335",
            "hw_ver": "1.0",
            "type": "IOT.SMARTPLUGSWITCH",
            "model": "HS110(UK)",
            "mac": "00:00:00:00:00:00",
            "deviceId": "0000000000000000000000000000000000000000",
            "hwId": "00000000000000000000000000000000",
            "fwId": "00000000000000000000000000000000",
            "oemId": "90AEEA7AECBF1A879FCA3C104C58C4D8",
            "alias": "Switch One",
            "dev_name": "Wi-Fi Smart Plug With Energy Monitoring",
            "icon_hash": "",
            "relay_state": 1,
            "on_time": 12521,
            "active_mode": "schedule",
            "feature": "TIM:ENE",
            "updating": 0,
            "rssi": -40,
            "led_off": 0,
            "latitude": 51.5,
            "longitude": -0.1,
        },
    },
    "emeter": {
        "get_realtime": {
            "current": 0.0,
            "voltage": 240.5,
            "power": 1.0,
            "total": 1.0,
            "err_code": 0,
        },
    },
    "smartlife.iot.dimmer": dict(NOT_SUPPORTED),
    "smartlife.iot.common.emeter": dict(NOT_SUPPORTED),
    "smartlife.iot.smartbulb.lightingservice": dict(NOT_SUPPORTED),
}

def _hs300_child(index: int, on_time: int) -> JsonableDict:
    return {"id": f"{index:02}", "state": 1, "alias": f"Plug {index}", "on_time": on_time, "next_action": {"type": -1}}

HS300: JsonableDict = {
    "system": {
        "get_sysinfo": {
            "sw_ver": "1.0.19 Build 200224 Rel.090814",
            "hw_ver": "1.0",
            "model": "HS300(US)",
            "deviceId": "8006D152992421723AD993266C6EC3341B7DF5C6",
            "oemId": "5C9E6254BEBAED63B2B6102966D24C17",
            "hwId": "34C41AA028022D0CCEA5E678E8547C54",
            "rssi": -61,
            "longitude_i": -843913,
            "latitude_i": 337738,
            "alias": "Power Strip",
            "status": "new",
            "mic_type": "IOT.SMARTPLUGSWITCH",
            "feature": "TIM:ENE",
            "mac": "68:FF:7B:B8:8C:F6",
            "updating": 0,
            "led_off": 0,
            "children": [_hs300_child(i, 47724) for i in range(6)],
            "child_num": 6,
            "err_code": 0,
        },
    },
    "emeter": {
        "get_realtime": {
            "voltage_mv": 117379,
            "current_ma": 1810,
            "power_mw": 204526,
            "total_wh": 231203,
            "err_code": 0,
        },
    },
    "smartlife.iot.dimmer": dict(NOT_SUPPORTED),
    "smartlife.iot.common.emeter": dict(NOT_SUPPORTED),
    "smartlife.iot.smartbulb.lightingservice": dict(NOT_SUPPORTED),
}

_LB110_DFT_ON_STATE: JsonableDict = {
    "mode": "normal",
    "hue": 0,
    "saturation": 0,
    "color_temp": 2700,
    "brightness": 1,
}

LB110_OFF: JsonableDict = {
    "system": {
        "get_sysinfo": {
            "sw_ver": "1.8.6 Build 180809 Rel.091659",
            "hw_ver": "1.0",
            "model": "LB110(EU)",
            "description": "Smart Wi-Fi LED Bulb with Dimmable Light",
            "alias": "Lamp",
            "mic_type": "IOT.SMARTBULB",
            "dev_state": "normal",
            "mic_mac": "000000000000",
            "deviceId": "0000000000000000000000000000000000000000",
            "oemId": "A68E15472071CB761E5CCFB388A1D8AE",
            "hwId": "00000000000000000000000000000000",
            "is_factory": False,
            "disco_ver": "1.0",
            "ctrl_protocols": {"name": "Linkie", "version": "1.0"},
            "light_state": {"on_off": 0, "dft_on_state": dict(_LB110_DFT_ON_STATE)},
            "is_dimmable": 1,
            "is_color": 0,
            "is_variable_color_temp": 0,
            "rssi": -51,
            "active_mode": "none",
            "heapsize": 290056,
            "err_code": 0,
        },
    },
    "emeter": {"err_code": -2001, "err_msg": "Module not support"},
    "smartlife.iot.dimmer": {"err_code": -2001, "err_msg": "Module not support"},
    "smartlife.iot.common.emeter": {"get_realtime": {"power_mw": 0, "err_code": 0}},
    "smartlife.iot.smartbulb.lightingservice": {
        "get_light_state": {"on_off": 0, "dft_on_state": dict(_LB110_DFT_ON_STATE), "err_code": 0},
    },
}

class StubClient:
    """Stands in for TPLinkClient. Each send() records the command and answers with the
       next canned reply; a callable reply is called with the command to produce the reply."""

    host: str
    port: int
    timeout_secs: Optional[float]
    sent: List[TPLinkCommand]
    replies: List[Union[JsonableDict, Callable[[TPLinkCommand], JsonableDict]]]

    def __init__(self, *replies: Union[JsonableDict, Callable[[TPLinkCommand], JsonableDict]], host: str="192.0.2.10", port: int=9999):
        self.host = host
        self.port = port
        self.timeout_secs = 1.0
        self.sent = []
        self.replies = list(replies)

    @property
    def address(self) -> HostAndPort:
        return (self.host, self.port)

    async def send(self, command: TPLinkCommand) -> TPLinkResponse:
        self.sent.append(command)
        if len(self.replies) == 0:
            raise AssertionError(f"Unexpected command sent: {command}")
        reply = self.replies[0]
        if callable(reply):
            return TPLinkResponse(reply(command))
        self.replies.pop(0)
        return TPLinkResponse(copy.deepcopy(reply))

@pytest.fixture
def hs100_off() -> JsonableDict:
    return copy.deepcopy(HS100_OFF)

@pytest.fixture
def hs110() -> JsonableDict:
    return copy.deepcopy(HS110)

@pytest.fixture
def hs300() -> JsonableDict:
    return copy.deepcopy(HS300)

@pytest.fixture
def lb110_off() -> JsonableDict:
    return copy.deepcopy(LB110_OFF)

@pytest.fixture
def lb110_on() -> JsonableDict:
    result = copy.deepcopy(LB110_OFF)
    on_state: JsonableDict = dict(_LB110_DFT_ON_STATE, on_off=1, brightness=10)
    result["system"]["get_sysinfo"]["light_state"] = dict(on_state)
    result["smartlife.iot.smartbulb.lightingservice"]["get_light_state"] = dict(on_state, err_code=0)
    result["smartlife.iot.common.emeter"]["get_realtime"]["power_mw"] = 1800
    return result

@pytest.fixture
def stub_client_class() -> Type[StubClient]:
    return StubClient
