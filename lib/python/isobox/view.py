#!/usr/bin/env python3
#
# Bounded byte views and checked integer reads for box decoding.
#

''' Bounded byte views and checked integer reads.

    A `ByteView` is a read only window onto some bytes
    supporting random access integer reads of a chosen width and endianness.
    Each read reports whether it succeeded and the offset it reached;
    nothing here raises for a short read.

    The `checked_read` and `checked_take` functions wrap those reads
    with the cursor bound used throughout the box decoder:
    every offset must fit in an unsigned 32 bit value.
    A read which reports a cursor outside that range raises
    `CursorOverflowError`, which is deliberately not an `Exception`
    so that it is not caught by ordinary error handling.

    Example:

        >>> view = ByteView(b'\\x00\\x00\\x00\\x10ftyp')
        >>> checked_read(view, 0, 4)
        (True, 16, 4)
        >>> checked_read(view, 6, 4)
        (False, None, 6)
'''

from typing import Optional, Tuple

from icontract import require

from cs.binary import (
    BinaryStruct,
    UInt8,
    Int16BE,
    Int16LE,
    Int32BE,
    Int32LE,
    UInt16BE,
    UInt16LE,
    UInt32BE,
    UInt32LE,
    UInt64BE,
    UInt64LE,
)
from cs.buffer import CornuCopyBuffer
from cs.deco import Promotable

__version__ = '20261019'

DISTINFO = {
    'keywords': ["python3"],
    'classifiers': [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Topic :: Multimedia :: Video",
    ],
    'install_requires': [
        'cs.binary',
        'cs.buffer',
        'cs.deco',
        'icontract',
    ],
}

BIG_ENDIAN = 'big'
LITTLE_ENDIAN = 'little'

# the largest cursor value, the maximum unsigned 32 bit integer
CURSOR_MAX = 2**32 - 1

# cs.binary has no signed 8 or 64 bit classes
Int8 = BinaryStruct('Int8', 'b')
Int64BE = BinaryStruct('Int64BE', '>q')
Int64LE = BinaryStruct('Int64LE', '<q')

# mapping of (width,little_endian,signed) to the class decoding it
INT_CLASSES = {
    (1, False, False): UInt8,
    (1, True, False): UInt8,
    (1, False, True): Int8,
    (1, True, True): Int8,
    (2, False, False): UInt16BE,
    (2, True, False): UInt16LE,
    (2, False, True): Int16BE,
    (2, True, True): Int16LE,
    (4, False, False): UInt32BE,
    (4, True, False): UInt32LE,
    (4, False, True): Int32BE,
    (4, True, True): Int32LE,
    (8, False, False): UInt64BE,
    (8, True, False): UInt64LE,
    (8, False, True): Int64BE,
    (8, True, True): Int64LE,
}

class CursorOverflowError(BaseException):
  ''' Raised when a read reports a cursor outside the unsigned 32 bit range.

      This indicates input which has already defeated the decoder's
      offset arithmetic, typically a hostile declared size.
      It subclasses `BaseException` so that `except Exception` handlers
      do not recover from it; the decode is abandoned outright.
  '''

  def __init__(self, offset, reached):
    super().__init__(
        f'cursor {reached} from offset {offset} exceeds {CURSOR_MAX}'
    )
    self.offset = offset
    self.reached = reached

class ByteView(Promotable):
  ''' A bounded read only view of some bytes.

      The view wraps a `memoryview` of the supplied `bytes`, `bytearray`
      or `memoryview` and never copies the data except for `read_bytes`,
      which returns an independent `bytes`.
  '''

  def __init__(self, data):
    self.data = memoryview(data).cast('B')

  def __str__(self):
    return f'{self.__class__.__name__}(len={len(self)})'

  __repr__ = __str__

  def __len__(self):
    return len(self.data)

  def available(self, offset: int) -> int:
    ''' The number of bytes from `offset` to the end of the view,
        `0` if `offset` is out of range.
    '''
    if offset < 0 or offset >= len(self.data):
      return 0
    return len(self.data) - offset

  def read(self, offset: int, width: int, little_endian=False, signed=False):
    ''' Read a `width` byte integer at `offset`.
        Return `(ok,value,offset)` where `offset` is the position reached.

        On failure (not enough data) `value` is `None`
        and the returned `offset` is the supplied `offset`.
    '''
    if self.available(offset) < width:
      return False, None, offset
    int_class = INT_CLASSES[width, bool(little_endian), bool(signed)]
    field, end_offset = int_class.parse_bytes(
        self.data, offset=offset, length=width
    )
    return True, field.value, end_offset

  def read_bytes(self, offset: int, length: int):
    ''' Read `length` raw bytes at `offset`.
        Return `(ok,data,offset)` where `data` is a new `bytes`
        on success and `None` on failure.
    '''
    if length < 0 or self.available(offset) < length:
      return False, None, offset
    if length == 0:
      return True, b'', offset
    bfr = CornuCopyBuffer.from_bytes(self.data, offset=offset, length=length)
    data = bfr.take(length)
    return True, data, bfr.offset

  @classmethod
  def from_bytes(cls, bs: bytes):
    ''' Promote `bytes` to a `ByteView`.
    '''
    return cls(bs)

  @classmethod
  def from_bytearray(cls, bs: bytearray):
    ''' Promote a `bytearray` to a `ByteView`.
    '''
    return cls(bs)

  @classmethod
  def from_memoryview(cls, mv: memoryview):
    ''' Promote a `memoryview` to a `ByteView`.
    '''
    return cls(mv)

def check_cursor(offset: int, reached: int) -> int:
  ''' Return `reached` if it is a valid cursor,
      otherwise raise `CursorOverflowError`.
  '''
  if not 0 <= reached <= CURSOR_MAX:
    raise CursorOverflowError(offset, reached)
  return reached

@require(lambda width: width in (1, 2, 4, 8))
@require(lambda endianness: endianness in (BIG_ENDIAN, LITTLE_ENDIAN))
def checked_read(
    view,
    offset: int,
    width: int,
    endianness=BIG_ENDIAN,
    *,
    signed=False,
) -> Tuple[bool, Optional[int], int]:
  ''' Read a `width` byte integer from `view` at `offset`.
      Return `(ok,value,offset)`.

      `view` is a `ByteView` or any object with a compatible `.read` method.

      On success `value` is the integer and `offset` has advanced past it.
      On failure `value` is `None`, leaving any prior value the caller
      holds untouched, and `offset` is wherever `view` reported it reached.

      Raises `CursorOverflowError` if the reported cursor
      does not fit in 32 bits, whether or not the read succeeded.
  '''
  ok, value, reached = view.read(
      offset,
      width,
      little_endian=endianness == LITTLE_ENDIAN,
      signed=signed,
  )
  check_cursor(offset, reached)
  if not ok:
    return False, None, reached
  return True, value, reached

def checked_take(view, offset: int,
                 length: int) -> Tuple[bool, Optional[bytes], int]:
  ''' Read `length` raw bytes from `view` at `offset`.
      Return `(ok,data,offset)` as for `checked_read`.
  '''
  ok, data, reached = view.read_bytes(offset, length)
  check_cursor(offset, reached)
  if not ok:
    return False, None, reached
  return True, bytes(data), reached
