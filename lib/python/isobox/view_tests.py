#!/usr/bin/env python3
#
# Unit tests for isobox.view.
#

''' Unit tests for isobox.view.
'''

import sys
import unittest

from icontract import ViolationError

from cs.logutils import setup_logging

from .view import (
    BIG_ENDIAN,
    CURSOR_MAX,
    LITTLE_ENDIAN,
    ByteView,
    CursorOverflowError,
    checked_read,
    checked_take,
)

class ReportingView(ByteView):
  ''' A `ByteView` whose reads always report a fixed outcome and cursor.
  '''

  def __init__(self, data, ok, reached):
    super().__init__(data)
    self.ok = ok
    self.reached = reached

  def read(self, offset, width, little_endian=False, signed=False):
    return self.ok, (0 if self.ok else None), self.reached

  def read_bytes(self, offset, length):
    return self.ok, (b'\0' * length if self.ok else None), self.reached

class TestByteView(unittest.TestCase):
  ''' Tests for `ByteView`.
  '''

  def setUp(self):
    self.view = ByteView(bytes(range(1, 17)))

  def test_len(self):
    self.assertEqual(len(self.view), 16)
    self.assertEqual(len(ByteView(b'')), 0)

  def test_available(self):
    self.assertEqual(self.view.available(0), 16)
    self.assertEqual(self.view.available(15), 1)
    self.assertEqual(self.view.available(16), 0)
    self.assertEqual(self.view.available(-1), 0)

  def test_read_widths(self):
    view = self.view
    self.assertEqual(view.read(0, 1), (True, 0x01, 1))
    self.assertEqual(view.read(0, 2), (True, 0x0102, 2))
    self.assertEqual(view.read(0, 4), (True, 0x01020304, 4))
    self.assertEqual(view.read(0, 8), (True, 0x0102030405060708, 8))
    self.assertEqual(view.read(8, 8), (True, 0x090a0b0c0d0e0f10, 16))

  def test_read_little_endian(self):
    view = self.view
    self.assertEqual(view.read(0, 2, little_endian=True), (True, 0x0201, 2))
    self.assertEqual(
        view.read(4, 4, little_endian=True), (True, 0x08070605, 8)
    )

  def test_read_signed(self):
    view = ByteView(b'\xff\xfe\x80\x00\x00\x00\x00\x00\x00\x00')
    self.assertEqual(view.read(0, 1, signed=True), (True, -1, 1))
    self.assertEqual(view.read(0, 2, signed=True), (True, -2, 2))
    self.assertEqual(
        view.read(2, 8, signed=True), (True, -0x8000000000000000, 10)
    )
    self.assertEqual(view.read(0, 1), (True, 0xff, 1))

  def test_read_short(self):
    view = self.view
    self.assertEqual(view.read(14, 4), (False, None, 14))
    self.assertEqual(view.read(16, 1), (False, None, 16))
    self.assertEqual(view.read(100, 1), (False, None, 100))
    self.assertEqual(view.read(-1, 1), (False, None, -1))

  def test_read_bytes(self):
    data = bytearray(b'0123456789')
    view = ByteView(data)
    ok, bs, offset = view.read_bytes(2, 4)
    self.assertTrue(ok)
    self.assertEqual(bs, b'2345')
    self.assertIsInstance(bs, bytes)
    self.assertEqual(offset, 6)
    # the result is a copy, not a view of the source
    data[2] = ord('X')
    self.assertEqual(bs, b'2345')
    self.assertEqual(view.read_bytes(8, 0), (True, b'', 8))
    self.assertEqual(view.read_bytes(8, 4), (False, None, 8))

  def test_promote(self):
    view = ByteView.promote(b'abc')
    self.assertIsInstance(view, ByteView)
    self.assertEqual(len(view), 3)
    self.assertIs(ByteView.promote(view), view)
    self.assertEqual(len(ByteView.promote(memoryview(b'abcd'))), 4)
    self.assertEqual(len(ByteView.promote(bytearray(5))), 5)

class TestCheckedRead(unittest.TestCase):
  ''' Tests for `checked_read` and `checked_take`.
  '''

  def test_success(self):
    view = ByteView(b'\x00\x00\x00\x10ftyp')
    self.assertEqual(checked_read(view, 0, 4), (True, 16, 4))
    self.assertEqual(checked_read(view, 0, 4, BIG_ENDIAN), (True, 16, 4))
    self.assertEqual(
        checked_read(view, 0, 4, LITTLE_ENDIAN), (True, 0x10000000, 4)
    )

  def test_wide_values_not_truncated(self):
    view = ByteView(b'\xff' * 8)
    self.assertEqual(checked_read(view, 0, 8), (True, 2**64 - 1, 8))

  def test_failure(self):
    view = ByteView(b'\x00\x00\x00\x10ftyp')
    self.assertEqual(checked_read(view, 6, 4), (False, None, 6))

  def test_failure_reports_source_cursor(self):
    # a source which advanced part way before running out
    view = ReportingView(b'abc', False, 2)
    self.assertEqual(checked_read(view, 0, 4), (False, None, 2))
    self.assertEqual(checked_take(view, 0, 4), (False, None, 2))

  def test_bad_width(self):
    view = ByteView(bytes(8))
    for width in 0, 3, 5, 16:
      with self.subTest(width=width):
        with self.assertRaises(ViolationError):
          checked_read(view, 0, width)

  def test_bad_endianness(self):
    with self.assertRaises(ViolationError):
      checked_read(ByteView(bytes(8)), 0, 4, 'middle')

  def test_cursor_limit(self):
    view = ReportingView(bytes(8), True, CURSOR_MAX)
    self.assertEqual(checked_read(view, 0, 4), (True, 0, CURSOR_MAX))

  def test_cursor_overflow_on_success(self):
    view = ReportingView(bytes(8), True, CURSOR_MAX + 1)
    with self.assertRaises(CursorOverflowError) as cm:
      checked_read(view, 0, 4)
    self.assertEqual(cm.exception.reached, CURSOR_MAX + 1)

  def test_cursor_overflow_on_failure(self):
    view = ReportingView(bytes(8), False, CURSOR_MAX + 8)
    with self.assertRaises(CursorOverflowError):
      checked_read(view, 0, 8)
    with self.assertRaises(CursorOverflowError):
      checked_take(view, 0, 16)

  def test_cursor_overflow_not_an_exception(self):
    self.assertFalse(issubclass(CursorOverflowError, Exception))
    self.assertTrue(issubclass(CursorOverflowError, BaseException))

  def test_take(self):
    view = ByteView(b'\x00\x00\x00\x18uuid' + bytes(range(16)))
    ok, data, offset = checked_take(view, 8, 16)
    self.assertTrue(ok)
    self.assertEqual(data, bytes(range(16)))
    self.assertEqual(offset, 24)
    self.assertEqual(checked_take(view, 9, 16), (False, None, 9))

def selftest(argv):
  ''' Run the unit tests.
  '''
  setup_logging()
  unittest.main(__name__, None, argv)

if __name__ == '__main__':
  selftest(sys.argv)
