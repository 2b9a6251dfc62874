#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import Optional

class TPLinkError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class TPLinkConnectionError(TPLinkError, ConnectionError):
  """The device could not be reached, refused the connection, or reset it."""
  pass

class TPLinkTimeoutError(TPLinkError, TimeoutError):
  """The device did not reply within the allowed time."""
  pass

class TruncatedFrameError(TPLinkError):
  """The stream ended before a complete length-prefixed frame was received."""
  pass

class MalformedResponseError(TPLinkError):
  """The bytes received from a device could not be decoded as a JSON object."""
  pass

class UnexpectedShapeError(TPLinkError, KeyError):
  """A namespace, action or field expected in a response is missing. Usually means the
     operation is not supported by the device firmware."""

  def __str__(self) -> str:
    # KeyError.__str__ quotes its argument
    return Exception.__str__(self)

class DeviceResponseError(TPLinkError):
  """The device answered with a non-zero err_code."""
  err_code: int
  err_msg: Optional[str]

  def __init__(self, err_code: int, err_msg: Optional[str]=None, context: Optional[str]=None):
    msg = f"Device returned err_code {err_code}"
    if err_msg is not None:
      msg += f": {err_msg}"
    if context is not None:
      msg = f"{context}: {msg}"
    super().__init__(msg)
    self.err_code = err_code
    self.err_msg = err_msg

class OutOfRangeError(TPLinkError, ValueError):
  """A requested value is outside the range supported by the device."""
  pass
