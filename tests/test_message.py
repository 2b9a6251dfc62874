#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import json

import pytest

from tplink_smarthome_protocol import (
    TPLinkCommand,
    TPLinkResponse,
    UnexpectedShapeError,
    DeviceResponseError,
    MalformedResponseError,
    OutOfRangeError,
)
from tplink_smarthome_protocol import message

def test_build_defaults_params_to_empty_object():
    assert message.get_sysinfo_command().to_json() == '{"system":{"get_sysinfo":{}}}'

def test_canned_command_shapes():
    assert message.set_relay_state_command(True).tree == {"system": {"set_relay_state": {"state": 1}}}
    assert message.set_relay_state_command(False).tree == {"system": {"set_relay_state": {"state": 0}}}
    assert message.set_dev_alias_command("dave").to_json() == '{"system":{"set_dev_alias":{"alias":"dave"}}}'
    assert message.reboot_command(120).tree == {"system": {"reboot": {"delay": 120}}}
    assert message.transition_light_state_command(on_off=1).tree == {
        "smartlife.iot.smartbulb.lightingservice": {"transition_light_state": {"on_off": 1}}}
    assert message.emeter_daystat_command("emeter", 2023, 4).tree == {
        "emeter": {"get_daystat": {"year": 2023, "month": 4}}}
    assert message.emeter_monthstat_command("emeter", 2023).tree == {
        "emeter": {"get_monthstat": {"year": 2023}}}

def test_daystat_rejects_bad_month():
    with pytest.raises(OutOfRangeError):
        message.emeter_daystat_command("emeter", 2023, 13)
    with pytest.raises(OutOfRangeError):
        message.emeter_daystat_command("emeter", 2023, 0)

def test_discovery_query_merges_all_namespaces():
    tree = message.discovery_query_command().tree
    assert tree == {
        "system": {"get_sysinfo": {}},
        "emeter": {"get_realtime": {}},
        "smartlife.iot.dimmer": {"get_dimmer_parameters": {}},
        "smartlife.iot.common.emeter": {"get_realtime": {}},
        "smartlife.iot.smartbulb.lightingservice": {"get_light_state": {}},
    }

def test_merge_combines_actions_in_same_namespace():
    merged = TPLinkCommand.merge(
        TPLinkCommand.build("system", "get_sysinfo"),
        TPLinkCommand.build("system", "set_relay_state", {"state": 1}),
    )
    assert merged.tree == {"system": {"get_sysinfo": {}, "set_relay_state": {"state": 1}}}

def test_commands_are_immutable():
    params = {"alias": "x"}
    command = TPLinkCommand.build("system", "set_dev_alias", params)
    params["alias"] = "y"
    tree = command.tree
    tree["system"]["set_dev_alias"]["alias"] = "z"
    assert command.tree == {"system": {"set_dev_alias": {"alias": "x"}}}
    added = command.add("system", "get_sysinfo")
    assert added is not command
    assert command.namespaces == ["system"]
    assert "get_sysinfo" not in command.tree["system"]

def test_with_context_puts_context_first():
    command = message.set_relay_state_command(True).with_context(["ABC00"])
    assert command.to_json() == '{"context":{"child_ids":["ABC00"]},"system":{"set_relay_state":{"state":1}}}'
    assert command.namespaces == ["system"]

def test_to_bytes_is_compact_utf8():
    command = message.set_dev_alias_command("café")
    assert command.to_bytes() == command.to_json().encode("utf-8")
    assert b" " not in command.to_bytes()

def test_from_bytes_rejects_non_json():
    with pytest.raises(MalformedResponseError):
        TPLinkResponse.from_bytes(b"\xff\xfe")
    with pytest.raises(MalformedResponseError):
        TPLinkResponse.from_bytes(b"{not json")
    with pytest.raises(MalformedResponseError):
        TPLinkResponse.from_bytes(b"[1, 2]")

def test_from_bytes_rejects_deeply_nested_json():
    with pytest.raises(MalformedResponseError):
        TPLinkResponse.from_bytes(b"[" * 100000 + b"]" * 100000)

def test_missing_sysinfo_fails_at_access_not_decode():
    response = TPLinkResponse.from_bytes(b'{"emeter":{"get_realtime":{"err_code":0,"power":1.0}}}')
    with pytest.raises(UnexpectedShapeError):
        response.sysinfo()
    assert response.emeter_realtime().power == 1.0

def test_sysinfo_accessors(hs100_off):
    response = TPLinkResponse.from_json(json.dumps(hs100_off))
    sysinfo = response.sysinfo()
    assert sysinfo.alias == "Switch Two"
    assert sysinfo.model == "HS100(UK)"
    assert sysinfo.hw_type == "IOT.SMARTPLUGSWITCH"
    assert sysinfo.hw_ver == "2.1"
    assert sysinfo.rssi == -53
    assert sysinfo.relay_state == 0
    assert sysinfo.location == (3456.0, 123.0)
    assert sysinfo.features == ["TIM"]
    assert not sysinfo.has_emeter
    assert sysinfo.led_off is False
    assert sysinfo.children is None
    assert response.is_on() is False

def test_bulb_sysinfo_field_aliases(lb110_off):
    sysinfo = TPLinkResponse(lb110_off).sysinfo()
    assert sysinfo.hw_type == "IOT.SMARTBULB"
    assert sysinfo.mac == "000000000000"
    assert sysinfo.dev_name == "Smart Wi-Fi LED Bulb with Dimmable Light"
    assert sysinfo.is_dimmable
    assert not sysinfo.is_color
    assert not sysinfo.is_variable_color_temp
    assert sysinfo.relay_state is None

def test_sysinfo_required_fields():
    response = TPLinkResponse({"system": {"get_sysinfo": {"err_code": 0, "model": "HS100(US)"}}})
    sysinfo = response.sysinfo()
    assert sysinfo.sw_ver is None
    with pytest.raises(UnexpectedShapeError):
        sysinfo.alias

def test_light_state_off_reads_default_on_state(lb110_off):
    response = TPLinkResponse(lb110_off)
    state = response.light_state()
    assert not state.is_on
    assert state.brightness == 1
    assert state.color_temp == 2700
    assert state.mode == "normal"
    assert response.is_on() is False

def test_light_state_on_is_flattened(lb110_on):
    response = TPLinkResponse(lb110_on)
    state = response.light_state()
    assert state.is_on
    assert state.brightness == 10
    assert response.is_on() is True

def test_namespace_error_raises_device_response_error(lb110_off):
    response = TPLinkResponse(lb110_off)
    with pytest.raises(DeviceResponseError) as exc_info:
        response.emeter_realtime("emeter")
    assert exc_info.value.err_code == -2001
    assert exc_info.value.err_msg == "Module not support"

def test_action_error_raises_device_response_error(hs100_off):
    response = TPLinkResponse(hs100_off)
    with pytest.raises(DeviceResponseError) as exc_info:
        response.emeter_realtime()
    assert exc_info.value.err_code == -1
    assert response.err_code("emeter", "get_realtime") == -1

def test_check_requires_action():
    TPLinkResponse({"system": {"set_dev_alias": {"err_code": 0}}}).check("system", "set_dev_alias")
    response = TPLinkResponse({"system": {"set_dev_alias": {"invalid": 1}}})
    with pytest.raises(UnexpectedShapeError):
        response.check("system", "set_dev_alias")
    with pytest.raises(UnexpectedShapeError):
        response.check("system", "reboot")
    with pytest.raises(DeviceResponseError):
        TPLinkResponse({"system": {"set_dev_alias": {"err_code": 1}}}).check("system", "set_dev_alias")

def test_emeter_realtime_plain_units(hs110):
    reading = TPLinkResponse(hs110).emeter_realtime()
    assert reading.voltage == 240.5
    assert reading.power == 1.0
    assert reading.current == 0.0
    assert reading.total == 1.0

def test_emeter_realtime_milli_units(hs300):
    reading = TPLinkResponse(hs300).emeter_realtime()
    assert reading.voltage == pytest.approx(117.379)
    assert reading.current == pytest.approx(1.81)
    assert reading.power == pytest.approx(204.526)
    assert reading.total == pytest.approx(231.203)

def test_emeter_realtime_partial(lb110_on):
    reading = TPLinkResponse(lb110_on).emeter_realtime("smartlife.iot.common.emeter")
    assert reading.power == pytest.approx(1.8)
    assert reading.voltage is None

def test_hs300_children(hs300):
    sysinfo = TPLinkResponse(hs300).sysinfo()
    children = sysinfo.children
    assert children is not None
    assert len(children) == 6
    assert children[3].id == "03"
    assert children[3].alias == "Plug 3"
    assert children[3].is_on
    assert sysinfo.child_num == 6
