#!/usr/bin/env python3
#
# ISO base media box headers and the two phase box decode.
#

''' Decoding of ISO base media ("ISO14496 part 12") box records.

    A box is a self describing record:
    a 32 bit big endian size, a four character type code,
    an optional 64 bit size (when the 32 bit size is `1`),
    an optional 16 byte extended type (when the type code is `uuid`)
    and a type specific payload.
    A size of `0` means the box extends to the end of its container;
    that is passed through as `0` and left for the caller to resolve.

    Decoding is done in two phases:
    * `BoxHeader.decode` produces an immutable `BoxHeader`
    * `Box.decode_payload`, the extension point for payload kinds,
      continues from the end of the header

    Payload kinds subclass `Box` (or `FullBox` for boxes with a
    version and flags prefix) and register themselves by type code
    when defined. `decode_box` peeks at the header, chooses the
    registered class and decodes an instance.

    Input problems are never raised: decoders return `(ok,offset)`
    and record a `DecodeFailure` on the box.
    The exception is a cursor outside the 32 bit range,
    which raises `isobox.view.CursorOverflowError`.
'''

from collections import namedtuple
from enum import Enum
from typing import Optional, Tuple, Union
from uuid import UUID

from typeguard import typechecked

from cs.binary import UInt32BE
from cs.deco import promote
from cs.logutils import debug, warning
from cs.pfx import Pfx
from cs.threads import ThreadState

from .view import ByteView, checked_read, checked_take

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
        'cs.deco',
        'cs.logutils',
        'cs.pfx',
        'cs.threads',
        'typeguard',
    ],
}

# the 32 bit size and the 32 bit type code
MINIMUM_BOX_SIZE = 8
EXTENDED_TYPE_LENGTH = 16

# per thread decode settings:
# warn_failures: log decode failures as warnings instead of debug messages
DECODE_MODE = ThreadState(warn_failures=False)

class DecodeFailure(Enum):
  ''' Why a decode failed.
  '''
  # a required read ran past the available data
  TRUNCATED = 'truncated'
  # the data were present but violate the payload kind's rules
  MALFORMED = 'malformed'

class FourCC(int):
  ''' A four character code: a 32 bit value whose big endian bytes
      are conventionally 4 printable ASCII characters.

      Instances may be made from an `int`,
      a 4 character `str` or 4 `bytes`:

          >>> FourCC('ftyp') == FourCC(b'ftyp') == 0x66747970
          True
          >>> str(FourCC(0x66747970))
          'ftyp'
  '''

  def __new__(cls, code=0):
    if isinstance(code, str):
      code = code.encode('ascii')
    if isinstance(code, (bytes, bytearray, memoryview)):
      if len(code) != 4:
        raise ValueError(f'{cls.__name__}: expected 4 bytes, got {code!r}')
      code = UInt32BE.from_bytes(bytes(code)).value
    if not 0 <= code <= 0xffffffff:
      raise ValueError(f'{cls.__name__}: {code!r} out of range for 32 bits')
    return super().__new__(cls, code)

  def __bytes__(self):
    return UInt32BE.transcribe_value(int(self))

  def __str__(self):
    ''' The 4 characters if printable ASCII, otherwise the `repr` of the bytes.
    '''
    bs = bytes(self)
    try:
      s = bs.decode('ascii')
    except UnicodeDecodeError:
      return repr(bs)
    if not s.isprintable():
      return repr(bs)
    return s

  def __repr__(self):
    return f'{self.__class__.__name__}({str(self)!r})'

# the type code of boxes with a 16 byte extended type
USER_TYPE = FourCC('uuid')

def read_size_and_type(view, offset: int):
  ''' Read the leading size and type code of a box header at `offset`.
      Return `(ok,box_type,box_size,offset)`.

      A 32 bit size of `1` is replaced by the following 64 bit size.
      A 32 bit size of `0` is returned as `0`.
  '''
  ok, size32, offset = checked_read(view, offset, 4)
  if not ok:
    return False, None, None, offset
  ok, box_type, offset = checked_read(view, offset, 4)
  if not ok:
    return False, None, None, offset
  if size32 == 1:
    ok, box_size, offset = checked_read(view, offset, 8)
    if not ok:
      return False, None, None, offset
  else:
    # 0 means "to the end of the container", resolved by the caller
    box_size = size32
  return True, FourCC(box_type), box_size, offset

@promote
def peek_box(view: ByteView,
             offset: int = 0) -> Optional[Tuple[FourCC, int]]:
  ''' Inspect the box header at `offset` in `view` without decoding a `Box`.
      Return `(box_type,box_size)` or `None` if there is not enough data.

      The extended type of a `uuid` box is not examined.
  '''
  if offset < 0 or offset + MINIMUM_BOX_SIZE > len(view):
    return None
  ok, box_type, box_size, _ = read_size_and_type(view, offset)
  if not ok:
    return None
  return box_type, box_size

class BoxHeader(namedtuple('BoxHeader',
                           'box_size box_type extended_type offset end_offset')
                ):
  ''' An immutable decoded box header.

      Fields:
      * `box_size`: the declared length of the whole box including the header,
        or `0` for a box extending to the end of its container
      * `box_type`: the `FourCC` type code
      * `extended_type`: the 16 byte extended type for `uuid` boxes,
        otherwise `b''`
      * `offset`: the offset of the start of the header
      * `end_offset`: the offset after the header, where the payload starts
  '''

  __slots__ = ()

  @classmethod
  def empty(cls):
    ''' The header of an undecoded `Box`.
    '''
    return cls(
        box_size=0,
        box_type=FourCC(0),
        extended_type=b'',
        offset=0,
        end_offset=0,
    )

  @property
  def header_length(self):
    ''' The number of bytes in the header.
    '''
    return self.end_offset - self.offset

  @property
  def type_uuid(self) -> UUID:
    ''' The `UUID` made from `self.extended_type`
        if `self.box_type` is `uuid`.
    '''
    if self.box_type != USER_TYPE:
      raise AttributeError(
          f'{self.__class__.__name__}.type_uuid: box type is not uuid'
      )
    return UUID(bytes=self.extended_type)

  @property
  def box_type_s(self) -> str:
    ''' The box type as a string:
        the `UUID` string for `uuid` boxes, otherwise `str(self.box_type)`.
    '''
    if self.box_type == USER_TYPE and self.extended_type:
      return str(self.type_uuid)
    return str(self.box_type)

  @classmethod
  @promote
  def decode(cls, view: ByteView, offset: int = 0):
    ''' Decode a box header from `view` at `offset`.
        Return `(header,offset)` where `header` is `None`
        if the data are truncated.
    '''
    start_offset = offset
    if offset < 0 or offset + MINIMUM_BOX_SIZE > len(view):
      return None, offset
    ok, box_type, box_size, offset = read_size_and_type(view, offset)
    if not ok:
      return None, offset
    extended_type = b''
    if box_type == USER_TYPE:
      ok, extended_type, offset = checked_take(
          view, offset, EXTENDED_TYPE_LENGTH
      )
      if not ok:
        return None, offset
    return cls(
        box_size=box_size,
        box_type=box_type,
        extended_type=extended_type,
        offset=start_offset,
        end_offset=offset,
    ), offset

class Box:
  ''' The base class for all boxes, ISO14496-12 section 4.2.

      A `Box` starts out empty and is populated once by `.decode()`.
      Subclasses decode their payloads by overriding `.decode_payload()`.

      Subclasses are registered by box type when defined:
      * from a `BOX_TYPES` class attribute listing type codes, or
      * from a `BOX_TYPE` class attribute, or
      * from a class name of the form *XXXX*`Box`
        where *XXXX* is an uppercased type code,
        with trailing underscores standing for spaces;
        for example `FTYPBox` handles `ftyp` and `URL_Box` handles `url `
  '''

  SUBCLASSES_BY_BOXTYPE = {}

  # the box types registered for this class
  REGISTERED_BOX_TYPES = ()

  def __init__(self):
    self.header = BoxHeader.empty()
    self.failure = None
    self.offset = None
    self.end_offset = None
    self._decode_started = False

  def __init_subclass__(cls, **isc_kw):
    super().__init_subclass__(**isc_kw)
    Box._register_subclass_boxtypes(cls)

  @staticmethod
  def _register_subclass_boxtypes(cls):
    # use cls.__dict__ so that subclasses do not inherit registrations
    box_types = cls.__dict__.get('BOX_TYPES')
    if box_types is None:
      box_type = cls.__dict__.get('BOX_TYPE')
      if box_type is None:
        try:
          box_type = cls.box_type_from_class()
        except ValueError as e:
          debug("no box type for class %s: %s", cls.__name__, e)
          box_types = ()
        else:
          box_types = (box_type,)
      else:
        box_types = (box_type,)
    box_types = tuple(FourCC(box_type) for box_type in box_types)
    SUBCLASSES_BY_BOXTYPE = Box.SUBCLASSES_BY_BOXTYPE
    for box_type in box_types:
      existing_box_class = SUBCLASSES_BY_BOXTYPE.get(box_type)
      if existing_box_class is not None:
        raise TypeError(
            f'box type {str(box_type)!r} already registered'
            f' as {existing_box_class.__name__}'
        )
    for box_type in box_types:
      SUBCLASSES_BY_BOXTYPE[box_type] = cls
    cls.REGISTERED_BOX_TYPES = box_types

  @classmethod
  def box_type_from_class(cls) -> FourCC:
    ''' Compute the box type from the class name.
        Raise `ValueError` if the name is not of the form *XXXX*`Box`.
    '''
    class_name = cls.__name__
    if class_name.endswith('Box'):
      prefix = class_name[:-3]
      if len(prefix) == 4 and prefix.rstrip('_').isupper():
        return FourCC(prefix.replace('_', ' ').lower())
    raise ValueError(f'no automatic box type for class named {class_name!r}')

  @staticmethod
  @typechecked
  def for_box_type(box_type: Union[int, str, bytes]) -> type:
    ''' Return the `Box` subclass registered for `box_type`,
        or `Box` if there is none.
    '''
    return Box.SUBCLASSES_BY_BOXTYPE.get(FourCC(box_type), Box)

  def __str__(self):
    s = f'{self.__class__.__name__}:{self.box_type_s}[{self.size}]'
    if self.failure is not None:
      s += f':{self.failure.value}'
    return s

  __repr__ = __str__

  @property
  def size(self) -> int:
    ''' The declared box size, `0` for a box extending to the end
        of its container.
    '''
    return self.header.box_size

  @property
  def box_type(self) -> FourCC:
    ''' The box type code.
    '''
    return self.header.box_type

  @property
  def extended_type(self) -> bytes:
    ''' The 16 byte extended type of a `uuid` box, otherwise `b''`.
    '''
    return self.header.extended_type

  @property
  def box_type_s(self) -> str:
    ''' The box type as a string.
    '''
    return self.header.box_type_s

  @promote
  def decode(self, view: ByteView, offset: int = 0) -> Tuple[bool, int]:
    ''' Decode this box from `view` starting at `offset`.
        Return `(ok,offset)` where `offset` is the position reached.

        The header is decoded first; if that succeeds it is stored
        as `self.header` and `self.decode_payload` is called.
        If either phase fails, `self.failure` is set
        and the box should be discarded.

        The payload phase is not limited to `self.size`;
        each payload kind must stay within its own declared length.
    '''
    if self._decode_started:
      raise RuntimeError(f'{self}: decode already attempted')
    self._decode_started = True
    self.offset = offset
    with Pfx("%s.decode@%d", self.__class__.__name__, offset):
      header, offset = BoxHeader.decode(view, offset)
      if header is None:
        ok, offset = self.truncated(offset, "incomplete box header")
      else:
        self.header = header
        debug("header %s", header)
        self.check_box_type()
        ok, offset = self.decode_payload(view, offset)
        if not ok and self.failure is None:
          self.failure = DecodeFailure.MALFORMED
      self.end_offset = offset
      return ok, offset

  def decode_payload(self, view: ByteView, offset: int) -> Tuple[bool, int]:
    ''' Decode the payload starting at `offset`, after the header.
        Return `(ok,offset)`.

        Subclasses override this to decode their own fields,
        normally calling `super().decode_payload(view,offset)` first.
        This base implementation consumes nothing.
    '''
    return True, offset

  def check_box_type(self) -> bool:
    ''' Check the decoded box type against the types registered for this class.
        Issue a warning and return `False` on a mismatch.
    '''
    registered = self.REGISTERED_BOX_TYPES
    if registered and self.box_type not in registered:
      warning(
          "box type should be in %r but got %r",
          [str(box_type) for box_type in registered],
          str(self.box_type),
      )
      return False
    return True

  def fail(self, failure: DecodeFailure, offset: int, msg, *a):
    ''' Record `failure` for this box and log `msg%a`.
        Return `(False,offset)` for use as the decode result.
    '''
    self.failure = failure
    log = warning if DECODE_MODE.warn_failures else debug
    log("%s at offset %d: " + msg, failure.value, offset, *a)
    return False, offset

  def truncated(self, offset: int, msg, *a):
    ''' Fail with `DecodeFailure.TRUNCATED`.
    '''
    return self.fail(DecodeFailure.TRUNCATED, offset, msg, *a)

  def malformed(self, offset: int, msg, *a):
    ''' Fail with `DecodeFailure.MALFORMED`.
    '''
    return self.fail(DecodeFailure.MALFORMED, offset, msg, *a)

class FullBox(Box):
  ''' A box whose payload starts with a 1 byte version and 3 bytes of flags,
      ISO14496-12 section 4.2.

      `version` and `flags` are `0` until a successful decode.
  '''

  VERSION_FLAGS_LENGTH = 4

  def __init__(self):
    super().__init__()
    self.version = 0
    self.flags = 0

  def __str__(self):
    return f'{super().__str__()}:v{self.version}:flags=0x{self.flags:06x}'

  __repr__ = __str__

  def decode_payload(self, view: ByteView, offset: int) -> Tuple[bool, int]:
    ''' Decode the version and flags, then any further payload
        decoded by subclasses.
    '''
    ok, offset = super().decode_payload(view, offset)
    if not ok:
      return False, offset
    if offset < 0 or offset + self.VERSION_FLAGS_LENGTH > len(view):
      return self.truncated(offset, "incomplete version and flags")
    ok, version, offset = checked_read(view, offset, 1)
    if not ok:
      return self.truncated(offset, "missing version")
    flags = 0
    for _ in range(3):
      ok, flags_byte, offset = checked_read(view, offset, 1)
      if not ok:
        return self.truncated(offset, "missing flags")
      flags = (flags << 8) | flags_byte
    self.version = version
    self.flags = flags
    return True, offset

@promote
def decode_box(view: ByteView,
               offset: int = 0,
               *,
               box_type_for=None) -> Tuple[Optional[Box], int]:
  ''' Decode the box at `offset` in `view`
      using the class chosen for its type code.
      Return `(box,offset)` where `box` is `None` if the decode failed.

      The optional `box_type_for` parameter is a callable
      mapping a `FourCC` to a `Box` subclass,
      default `Box.for_box_type`.
  '''
  if box_type_for is None:
    box_type_for = Box.for_box_type
  peeked = peek_box(view, offset)
  if peeked is None:
    debug("no box header at offset %d", offset)
    return None, offset
  box_type, _ = peeked
  box = box_type_for(box_type)()
  ok, end_offset = box.decode(view, offset)
  if not ok:
    return None, end_offset
  return box, end_offset
