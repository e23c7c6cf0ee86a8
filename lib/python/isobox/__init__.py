#!/usr/bin/env python3

''' Decoding of ISO base media box records from in-memory bytes.

    The main entry points are:
    * `peek_box(view,offset)`: the type code and size of the next box
      without decoding it
    * `decode_box(view,offset)`: decode the next box
      using the `Box` subclass registered for its type code
    * `Box` and `FullBox`: base classes for payload kinds,
      which override `decode_payload`

    Example:

        >>> box, offset = decode_box(b'\\x00\\x00\\x00\\x10ftyp' + bytes(8))
        >>> str(box.box_type), box.size, offset
        ('ftyp', 16, 8)
'''

from .box import (
    DECODE_MODE,
    MINIMUM_BOX_SIZE,
    USER_TYPE,
    Box,
    BoxHeader,
    DecodeFailure,
    FourCC,
    FullBox,
    decode_box,
    peek_box,
)
from .view import (
    BIG_ENDIAN,
    CURSOR_MAX,
    LITTLE_ENDIAN,
    ByteView,
    CursorOverflowError,
    checked_read,
    checked_take,
)

__version__ = '20261019'
