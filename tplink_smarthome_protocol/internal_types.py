#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by this package"""

from __future__ import annotations

from typing import (
    Dict, List, Optional, Union, Any, Tuple, Set, Type, TypeVar, Callable, Awaitable, cast,
    Mapping, MutableMapping, Iterable, Iterator, Sequence,
    AsyncIterator, AsyncIterable, AsyncContextManager, ClassVar,
  )

from types import TracebackType

from typing_extensions import Self

HostAndPort = Tuple[str, int]
"""An (ip_address_or_hostname, port) tuple, as used by the socket module"""

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A value that can be serialized to/from JSON"""

JsonableDict = Dict[str, Jsonable]
"""A JSON object"""
