#!/usr/bin/env python3

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import os
import sys
import argparse
import json
import asyncio
import logging

from tplink_smarthome_protocol.internal_types import *

from tplink_smarthome_protocol import (
    __version__ as pkg_version,
    TPLinkDiscoveryClient,
    SysInfo,
    Switch,
    MultiSwitch,
    UnexpectedShapeError,
    connect,
    DEFAULT_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
  )
from tplink_smarthome_protocol.util import format_host_and_port

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError as e:
        raise CmdExitError(2, f"Environment variable {name} is not a number: {value!r}") from e

def _sysinfo_state(sysinfo: SysInfo) -> str:
    relay_state = sysinfo.relay_state
    if relay_state is not None:
        return "on" if relay_state > 0 else "off"
    light_state = sysinfo.light_state
    if light_state is not None and light_state.on_off is not None:
        return "on" if light_state.on_off == 1 else "off"
    return "-"

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def _report_error(self, what: str, ex: Exception) -> None:
        if self._provide_traceback:
            logging.exception(f"{what} failed")
        print(f"tplink: error: {what}: {ex}", file=sys.stderr)

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 2

    async def cmd_discover(self) -> int:
        response_wait_time: float = self._args.wait_time
        as_json: bool = self._args.json
        client = TPLinkDiscoveryClient(response_wait_time=response_wait_time)
        results = await client.discover()
        for addr, info in results.items():
            sysinfo = info.sysinfo
            if as_json:
                summary: JsonableDict = {
                    "address": addr[0],
                    "sysinfo": sysinfo.data,
                    "utc_time": info.utc_time.isoformat(),
                }
                print(json.dumps(summary, sort_keys=True))
            else:
                fields = [
                    addr[0],
                    sysinfo.get("alias"),
                    sysinfo.hw_type,
                    sysinfo.dev_name,
                    sysinfo.get("model"),
                ]
                print("\t".join('-' if x is None else str(x) for x in fields))
            sys.stdout.flush()
        return 0

    async def cmd_status(self) -> int:
        addresses: List[str] = self._args.addresses
        as_json: bool = self._args.json
        timeout_secs: float = self._args.timeout
        rc = 0
        for address in addresses:
            try:
                device = await connect(address, timeout_secs=timeout_secs)
                sysinfo = device.last_sysinfo
                assert sysinfo is not None
                if as_json:
                    summary: JsonableDict = {
                        "address": format_host_and_port(device.address),
                        "variant": device.variant.value,
                        "sysinfo": sysinfo.data,
                    }
                    print(json.dumps(summary, sort_keys=True))
                else:
                    print(f"{format_host_and_port(device.address)}\t{sysinfo.alias}\t{sysinfo.model}\t{_sysinfo_state(sysinfo)}")
                sys.stdout.flush()
            except Exception as ex:
                self._report_error(address, ex)
                rc = 1
        return rc

    async def cmd_switch(self) -> int:
        address: str = self._args.address
        state: str = self._args.state
        outlet: Optional[int] = self._args.outlet
        timeout_secs: float = self._args.timeout
        device = await connect(address, timeout_secs=timeout_secs)
        if outlet is not None:
            if not isinstance(device, MultiSwitch):
                raise UnexpectedShapeError(f"{device} does not have individually switched outlets")
            if state == "toggle":
                await device.toggle(outlet)
            else:
                await device.switch(outlet, state == "on")
        else:
            if not isinstance(device, Switch):
                raise UnexpectedShapeError(f"{device} cannot be switched on or off as a whole")
            if state == "toggle":
                await device.toggle()
            else:
                await device.switch(state == "on")
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the tplink command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover and control TP-Link smart home devices on the local network.")

        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('-t', '--timeout', type=float, default=None,
                            help=f'''Timeout for each device round trip, in seconds. Default: use env var TPLINK_TIMEOUT, or {DEFAULT_TIMEOUT}''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        # ======================= discover

        parser_discover = subparsers.add_parser('discover', description="Broadcast a discovery query and list the devices that reply")
        parser_discover.add_argument('--wait-time', dest='wait_time', type=float, default=None,
                            help=f'''The amount of time to wait for replies, in seconds. Default: use env var TPLINK_DISCOVERY_WAIT_TIME, or {DEFAULT_DISCOVERY_TIMEOUT}''')
        parser_discover.add_argument('--json', action='store_true', default=False,
                            help='Print one JSON object per device')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= status

        parser_status = subparsers.add_parser('status', description="Display the system information of one or more devices")
        parser_status.add_argument('addresses', nargs='+', metavar='ADDRESS',
                            help='Device address, as host or host:port')
        parser_status.add_argument('--json', action='store_true', default=False,
                            help='Print one JSON object per device')
        parser_status.set_defaults(func=self.cmd_status)

        # ======================= switch

        parser_switch = subparsers.add_parser('switch', description="Switch a device (or one outlet of a power strip) on or off")
        parser_switch.add_argument('address', metavar='ADDRESS',
                            help='Device address, as host or host:port')
        parser_switch.add_argument('state', choices=['on', 'off', 'toggle'],
                            help='The new state')
        parser_switch.add_argument('--outlet', type=int, default=None,
                            help='The outlet index (starting at 0) on a power strip')
        parser_switch.set_defaults(func=self.cmd_switch)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            if args.timeout is None:
                args.timeout = _env_float("TPLINK_TIMEOUT", DEFAULT_TIMEOUT)
            if getattr(args, 'wait_time', 0.0) is None:
                args.wait_time = _env_float("TPLINK_DISCOVERY_WAIT_TIME", DEFAULT_DISCOVERY_TIMEOUT)
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"tplink: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"tplink: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
