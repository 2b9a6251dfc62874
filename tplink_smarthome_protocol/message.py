#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
TPLinkCommand and TPLinkResponse -- the JSON request/reply model of the TP-Link smart home
protocol.

A command is a tree of the form

    { <namespace>: { <action>: { <param>: <value>, ... }, ... }, ... }

and the device's reply mirrors the same namespace/action nesting, with the action's
result object in place of the parameters. Each result object carries an "err_code"
(0 meaning success) and, on failure, an "err_msg". A namespace that the device does
not implement is replaced in the reply by a single error object, e.g.:

    {"emeter": {"err_code": -1, "err_msg": "module not support"}}
"""

from __future__ import annotations

import copy
import json

from .internal_types import *
from .constants import (
    SYSTEM_NAMESPACE,
    EMETER_NAMESPACE,
    SMARTLIFE_EMETER_NAMESPACE,
    DIMMER_NAMESPACE,
    LIGHT_SERVICE_NAMESPACE,
  )
from .exceptions import MalformedResponseError, UnexpectedShapeError, DeviceResponseError, OutOfRangeError
from .datatypes import SysInfo, LightState, EmeterRealtime
from . import cipher

class TPLinkCommand:
    """An immutable command tree. Builder methods return new instances."""

    _tree: JsonableDict

    def __init__(self, tree: Optional[Mapping[str, Jsonable]]=None):
        self._tree = {} if tree is None else copy.deepcopy(dict(tree))

    @classmethod
    def build(cls, namespace: str, action: str, params: Optional[Mapping[str, Jsonable]]=None) -> TPLinkCommand:
        """Creates a command with a single namespace/action. params defaults to {}."""
        return cls().add(namespace, action, params)

    @classmethod
    def merge(cls, *commands: TPLinkCommand) -> TPLinkCommand:
        """Combines several commands into one. Later commands win where the same
           namespace/action appears more than once."""
        tree: JsonableDict = {}
        for command in commands:
            for namespace, actions in command._tree.items():
                if isinstance(actions, dict) and isinstance(tree.get(namespace), dict):
                    merged = dict(cast(JsonableDict, tree[namespace]))
                    merged.update(actions)
                    tree[namespace] = merged
                else:
                    tree[namespace] = actions
        return cls(tree)

    def add(self, namespace: str, action: str, params: Optional[Mapping[str, Jsonable]]=None) -> TPLinkCommand:
        """Returns a new command with namespace/action added."""
        tree = copy.deepcopy(self._tree)
        actions = tree.get(namespace)
        if not isinstance(actions, dict):
            actions = {}
            tree[namespace] = actions
        actions[action] = {} if params is None else copy.deepcopy(dict(params))
        return TPLinkCommand(tree)

    def with_context(self, child_ids: Iterable[str]) -> TPLinkCommand:
        """Returns a new command addressed to the given children of a power strip."""
        # Devices expect the context block ahead of the namespaces
        tree: JsonableDict = {"context": {"child_ids": list(child_ids)}}
        for namespace, actions in self._tree.items():
            if namespace != "context":
                tree[namespace] = copy.deepcopy(actions)
        return TPLinkCommand(tree)

    @property
    def tree(self) -> JsonableDict:
        """A deep copy of the command tree"""
        return copy.deepcopy(self._tree)

    @property
    def namespaces(self) -> List[str]:
        return [ns for ns in self._tree if ns != "context"]

    def to_json(self) -> str:
        return json.dumps(self._tree, separators=(',', ':'))

    def to_bytes(self) -> bytes:
        return cipher.to_json_bytes(self._tree)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, TPLinkCommand):
            return False
        return self._tree == other._tree

    def __repr__(self) -> str:
        return f"TPLinkCommand({self.to_json()})"

    def __str__(self) -> str:
        return self.to_json()

def get_sysinfo_command() -> TPLinkCommand:
    return TPLinkCommand.build(SYSTEM_NAMESPACE, "get_sysinfo")

def set_relay_state_command(on: bool) -> TPLinkCommand:
    return TPLinkCommand.build(SYSTEM_NAMESPACE, "set_relay_state", {"state": 1 if on else 0})

def set_dev_alias_command(alias: str) -> TPLinkCommand:
    return TPLinkCommand.build(SYSTEM_NAMESPACE, "set_dev_alias", {"alias": alias})

def reboot_command(delay_secs: int=1) -> TPLinkCommand:
    if delay_secs < 0:
        raise OutOfRangeError(f"Reboot delay must be non-negative: {delay_secs}")
    return TPLinkCommand.build(SYSTEM_NAMESPACE, "reboot", {"delay": delay_secs})

def get_light_state_command() -> TPLinkCommand:
    return TPLinkCommand.build(LIGHT_SERVICE_NAMESPACE, "get_light_state")

def transition_light_state_command(**state: Jsonable) -> TPLinkCommand:
    """e.g. transition_light_state_command(on_off=1, brightness=50)"""
    return TPLinkCommand.build(LIGHT_SERVICE_NAMESPACE, "transition_light_state", state)

def emeter_realtime_command(namespace: str=EMETER_NAMESPACE) -> TPLinkCommand:
    return TPLinkCommand.build(namespace, "get_realtime")

def emeter_daystat_command(namespace: str, year: int, month: int) -> TPLinkCommand:
    if month < 1 or month > 12:
        raise OutOfRangeError(f"Month must be in the range 1..12: {month}")
    return TPLinkCommand.build(namespace, "get_daystat", {"year": year, "month": month})

def emeter_monthstat_command(namespace: str, year: int) -> TPLinkCommand:
    return TPLinkCommand.build(namespace, "get_monthstat", {"year": year})

def discovery_query_command() -> TPLinkCommand:
    """The query broadcast during discovery. Asks every kind of device for everything
       needed to identify it and report its state in a single reply; devices answer
       the namespaces they do not implement with an error object."""
    return TPLinkCommand.merge(
        get_sysinfo_command(),
        emeter_realtime_command(EMETER_NAMESPACE),
        TPLinkCommand.build(DIMMER_NAMESPACE, "get_dimmer_parameters"),
        emeter_realtime_command(SMARTLIFE_EMETER_NAMESPACE),
        get_light_state_command(),
      )

def _err_code_of(obj: Mapping[str, Jsonable]) -> Optional[int]:
    err_code = obj.get("err_code")
    if isinstance(err_code, bool) or not isinstance(err_code, int):
        return None
    return err_code

def _err_msg_of(obj: Mapping[str, Jsonable]) -> Optional[str]:
    err_msg = obj.get("err_msg")
    return err_msg if isinstance(err_msg, str) else None

class TPLinkResponse(Mapping[str, Jsonable]):
    """A read-only view of a device reply, with typed accessors.

    Decoding succeeds for any JSON object; the accessors raise UnexpectedShapeError when
    the namespace/action they need is absent (the device does not support it) and
    DeviceResponseError when the device reported a non-zero err_code.
    """

    _data: JsonableDict

    def __init__(self, data: Mapping[str, Jsonable]):
        self._data = dict(data)

    @classmethod
    def from_json(cls, text: str) -> TPLinkResponse:
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as e:
            # RecursionError: nesting too deep for the decoder
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Response JSON is not an object: {text!r}")
        return cls(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> TPLinkResponse:
        """Parses deciphered response bytes."""
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedResponseError(f"Response is not valid UTF-8: {e}") from e
        return cls.from_json(text)

    def __getitem__(self, key: str) -> Jsonable:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"TPLinkResponse({self._data!r})"

    @property
    def data(self) -> JsonableDict:
        return copy.deepcopy(self._data)

    def to_json(self) -> str:
        return json.dumps(self._data, separators=(',', ':'))

    def has_section(self, namespace: str) -> bool:
        return isinstance(self._data.get(namespace), dict)

    def section(self, namespace: str) -> JsonableDict:
        """Returns the object for a namespace. Raises DeviceResponseError if the device
           replaced the whole namespace with an error object."""
        section = self._data.get(namespace)
        if not isinstance(section, dict):
            raise UnexpectedShapeError(f"Response has no '{namespace}' object")
        err_code = _err_code_of(section)
        if err_code is not None and err_code != 0:
            raise DeviceResponseError(err_code, _err_msg_of(section), context=namespace)
        return section

    def raw_result(self, namespace: str, action: str) -> JsonableDict:
        """Returns the result object for namespace/action without checking its err_code"""
        result = self.section(namespace).get(action)
        if not isinstance(result, dict):
            raise UnexpectedShapeError(f"Response has no '{namespace}.{action}' object")
        return result

    def err_code(self, namespace: str, action: str) -> Optional[int]:
        """The err_code reported for namespace/action, or None if no err_code was reported"""
        return _err_code_of(self.raw_result(namespace, action))

    def result(self, namespace: str, action: str) -> JsonableDict:
        """Returns the result object for namespace/action, checking its err_code."""
        result = self.raw_result(namespace, action)
        err_code = _err_code_of(result)
        if err_code is not None and err_code != 0:
            raise DeviceResponseError(err_code, _err_msg_of(result), context=f"{namespace}.{action}")
        return result

    def check(self, namespace: str, action: str) -> None:
        """Raises an exception unless namespace/action reported err_code 0"""
        if self.err_code(namespace, action) is None:
            raise UnexpectedShapeError(f"Response has no err_code for '{namespace}.{action}'")
        self.result(namespace, action)

    def sysinfo(self) -> SysInfo:
        return SysInfo(self.result(SYSTEM_NAMESPACE, "get_sysinfo"))

    def is_on(self) -> bool:
        """The on/off state from either a plug's sysinfo relay state or a bulb's light state"""
        light_section = self._data.get(LIGHT_SERVICE_NAMESPACE)
        if isinstance(light_section, dict):
            for action in ("get_light_state", "transition_light_state"):
                if isinstance(light_section.get(action), dict):
                    return self.light_state(action).is_on
        sysinfo = self.sysinfo()
        relay_state = sysinfo.relay_state
        if relay_state is not None:
            return relay_state > 0
        light_state = sysinfo.light_state
        if light_state is not None:
            return light_state.is_on
        raise UnexpectedShapeError("Response carries neither a relay state nor a light state")

    def light_state(self, action: str="get_light_state") -> LightState:
        return LightState(self.result(LIGHT_SERVICE_NAMESPACE, action))

    def emeter_realtime(self, namespace: str=EMETER_NAMESPACE) -> EmeterRealtime:
        return EmeterRealtime.from_json(self.result(namespace, "get_realtime"))
