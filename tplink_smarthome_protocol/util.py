#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

import netifaces
import socket
from ipaddress import IPv4Address

from .internal_types import *
from .constants import TPLINK_PORT, TPLINK_BROADCAST_ADDRESS

def parse_host_and_port(address: str, default_port: int=TPLINK_PORT) -> HostAndPort:
    """Parses an address string of the form "host", "host:port", "[ipv6]" or "[ipv6]:port".

    Raises ValueError if the port is not a valid port number or the host is empty.
    """
    address = address.strip()
    host = address
    port_str: Optional[str] = None
    if address.startswith('['):
        i = address.find(']')
        if i < 0:
            raise ValueError(f"Unterminated '[' in address: {address!r}")
        host = address[1:i]
        remainder = address[i + 1:]
        if remainder != '':
            if not remainder.startswith(':'):
                raise ValueError(f"Invalid address: {address!r}")
            port_str = remainder[1:]
    elif address.count(':') == 1:
        host, port_str = address.split(':')
    if host == '':
        raise ValueError(f"Missing host in address: {address!r}")
    port = default_port
    if port_str is not None:
        try:
            port = int(port_str)
        except ValueError as e:
            raise ValueError(f"Invalid port number in address: {address!r}") from e
        if not (0 < port < 65536):
            raise ValueError(f"Port number out of range in address: {address!r}")
    return (host, port)

def format_host_and_port(addr: HostAndPort, default_port: Optional[int]=TPLINK_PORT) -> str:
    """The inverse of parse_host_and_port. The port is omitted if it is default_port."""
    host, port = addr
    if ':' in host:
        host = f"[{host}]"
    if default_port is not None and port == default_port:
        return host
    return f"{host}:{port}"

def get_default_ip_gateway(address_family: Union[socket.AddressFamily, int]=socket.AF_INET) -> Tuple[Optional[str], Optional[str]]:
    """Returns the (gateway_ip_address: str, gateway_interface_name: str) for the default IP gateway in the
       requested family, if any.
       returns (None, None) if there is no default gateway in the requested family."""
    assert int(address_family) in (int(socket.AF_INET), int(socket.AF_INET6))
    netiface_family = netifaces.AF_INET if int(address_family) == int(socket.AF_INET) else netifaces.AF_INET6
    gws = netifaces.gateways()
    if "default" in gws:
        default_gateway_infos = gws["default"]
        if netiface_family in default_gateway_infos:
            gw_ip, gw_interface_name = default_gateway_infos[netiface_family][:2]
            return (gw_ip, gw_interface_name)
    return (None, None)

def get_broadcast_addresses_and_interfaces(include_loopback: bool=False) -> List[Tuple[str, str]]:
    """Returns a list of Tuple[broadcast_address: str, interface_name: str] for the IPv4 broadcast addresses
       of the local host's interfaces. The result is sorted so that the default gateway interface comes
       first, and addresses on 172.x.x.x networks (typically local docker networks) come last."""
    result_with_priority: List[Tuple[int, str, str]] = []
    _, default_gateway_ifname = get_default_ip_gateway(socket.AF_INET)
    for ifname in netifaces.interfaces():
        ifinfo = netifaces.ifaddresses(ifname)
        if netifaces.AF_INET in ifinfo:
            for addrinfo in ifinfo[netifaces.AF_INET]:
                ip_str = addrinfo.get('addr')
                broadcast_str = addrinfo.get('broadcast')
                if not isinstance(broadcast_str, str) or not isinstance(ip_str, str):
                    continue
                if IPv4Address(ip_str).is_loopback:
                    if not include_loopback:
                        continue
                    priority = 3
                elif ifname == default_gateway_ifname:
                    priority = 0
                elif ip_str.startswith('172.'):
                    priority = 2
                else:
                    priority = 1
                result_with_priority.append((priority, broadcast_str, ifname))
    return [ (bcast, ifname) for _, bcast, ifname in sorted(result_with_priority)]

def get_broadcast_addresses(include_loopback: bool=False) -> List[str]:
    """Returns the distinct IPv4 broadcast addresses of the local host's interfaces, in preference order.
       If no interface reports a broadcast address, returns the limited broadcast address
       ["255.255.255.255"]."""
    result: List[str] = []
    for bcast, _ in get_broadcast_addresses_and_interfaces(include_loopback=include_loopback):
        if bcast not in result:
            result.append(bcast)
    if len(result) == 0:
        result.append(TPLINK_BROADCAST_ADDRESS)
    return result
