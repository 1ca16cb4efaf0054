import unittest

from pycborstream import codec
from pycborstream.codec import CodecError, CodecErrorCode


def cursor_over(data):
    return codec.Cursor(codec.ByteSource(data))


class EncodeHeadTestCase(unittest.TestCase):

    def test_shortest_argument_width(self):
        self.assertEqual(b"\x0a", codec.encode_head(codec.UNSIGNED_INTEGER, 10))
        self.assertEqual(b"\x18\x18", codec.encode_head(codec.UNSIGNED_INTEGER, 24))
        self.assertEqual(b"\x19\x01\xf4", codec.encode_head(codec.UNSIGNED_INTEGER, 500))
        self.assertEqual(
            b"\x1a\x00\x01\x00\x00",
            codec.encode_head(codec.UNSIGNED_INTEGER, 0x10000))
        self.assertEqual(
            b"\x1b\x00\x00\x00\x01\x00\x00\x00\x00",
            codec.encode_head(codec.UNSIGNED_INTEGER, 0x100000000))
        self.assertEqual(b"\x85", codec.encode_head(codec.ARRAY, 5))

    def test_argument_out_of_range(self):
        with self.assertRaises(CodecError) as cm:
            codec.encode_head(codec.UNSIGNED_INTEGER, 2 ** 64)
        self.assertIs(CodecErrorCode.DATA_TOO_LARGE, cm.exception.code)
        with self.assertRaises(CodecError) as cm:
            codec.encode_head(codec.UNSIGNED_INTEGER, -1)
        self.assertIs(CodecErrorCode.ILLEGAL_NUMBER, cm.exception.code)


class WriterTestCase(unittest.TestCase):

    def setUp(self):
        self.sink = codec.ByteSink(32)
        self.writer = codec.Writer(self.sink)

    def test_scalars(self):
        w = self.writer
        w.write_uint(10)
        w.write_int(-20)
        w.write_text(u"é")
        w.write_bytes(b"\x01\x02")
        w.write_bool(True)
        w.write_bool(False)
        w.write_null()
        w.write_undefined()
        w.write_float(1.5)
        expected = (b"\x0a\x33\x62\xc3\xa9\x42\x01\x02\xf5\xf4\xf6\xf7"
                    b"\xfa\x3f\xc0\x00\x00")
        self.assertEqual(expected, self.sink.getvalue())

    def test_double(self):
        self.writer.write_double(1.5)
        self.assertEqual(b"\xfb\x3f\xf8\x00\x00\x00\x00\x00\x00",
                         self.sink.getvalue())

    def test_signed_range(self):
        self.writer.write_int(codec.INT64_MIN)
        self.assertEqual(b"\x3b\x7f\xff\xff\xff\xff\xff\xff\xff",
                         self.sink.getvalue())
        self.assertRaises(CodecError, self.writer.write_int, codec.INT64_MAX + 1)
        self.assertRaises(CodecError, self.writer.write_uint, -1)

    def test_exhausted_sink_is_untouched(self):
        """Test that a write that does not fit fails without writing a
        partial item."""
        sink = codec.ByteSink(3)
        writer = codec.Writer(sink)
        writer.write_uint(1)
        with self.assertRaises(CodecError) as cm:
            writer.write_text("abc")
        self.assertIs(CodecErrorCode.OUT_OF_MEMORY, cm.exception.code)
        self.assertEqual(1, sink.used)
        self.assertEqual(b"\x01", sink.getvalue())

    def test_definite_container_counts_items(self):
        child = self.writer.open_array(1)
        child.write_uint(1)
        with self.assertRaises(CodecError) as cm:
            child.write_uint(2)
        self.assertIs(CodecErrorCode.TOO_MANY_ITEMS, cm.exception.code)
        self.writer.close_container(child)
        self.assertEqual(b"\x81\x01", self.sink.getvalue())

    def test_map_counts_keys_and_values(self):
        child = self.writer.open_map(1)
        child.write_text("a")
        self.assertRaises(CodecError, self.writer.close_container, child)
        child.write_uint(1)
        self.writer.close_container(child)
        self.assertEqual(b"\xa1\x61\x61\x01", self.sink.getvalue())

    def test_checked_and_forced_close(self):
        child = self.writer.open_array(2)
        child.write_uint(1)
        with self.assertRaises(CodecError) as cm:
            self.writer.close_container(child)
        self.assertIs(CodecErrorCode.TOO_FEW_ITEMS, cm.exception.code)
        self.assertFalse(child.closed)
        self.assertEqual(1, self.sink.open_containers)
        self.writer.close_container(child, checked=False)
        self.assertTrue(child.closed)
        self.assertEqual(0, self.sink.open_containers)
        with self.assertRaises(CodecError) as cm:
            self.writer.close_container(child, checked=False)
        self.assertIs(CodecErrorCode.CONTAINER_CLOSED, cm.exception.code)

    def test_indefinite_containers(self):
        arr = self.writer.open_array(None)
        arr.write_uint(1)
        inner = arr.open_map(None)
        inner.write_text("k")
        inner.write_null()
        arr.close_container(inner)
        self.writer.close_container(arr)
        self.assertEqual(b"\x9f\x01\xbf\x61\x6b\xf6\xff\xff", self.sink.getvalue())
        self.assertEqual(2, self.sink.opened)
        self.assertEqual(2, self.sink.closed)

    def test_forced_close_without_room_for_break(self):
        sink = codec.ByteSink(1)
        writer = codec.Writer(sink)
        child = writer.open_array(None)
        self.assertRaises(CodecError, writer.close_container, child)
        writer.close_container(child, checked=False)
        self.assertTrue(child.closed)
        self.assertEqual(0, sink.open_containers)


class CursorTestCase(unittest.TestCase):

    def test_scalars(self):
        cursor = cursor_over(b"\x0a\x33\x65Hello\x42\x01\x02\xf5\xfa\x3f\xc0\x00\x00")
        self.assertEqual(10, cursor.get_uint())
        cursor.advance()
        self.assertTrue(cursor.is_int())
        self.assertFalse(cursor.is_uint())
        self.assertEqual(-20, cursor.get_int())
        cursor.advance()
        self.assertEqual(5, cursor.get_string_length())
        self.assertEqual("Hello", cursor.copy_text())
        cursor.advance()
        self.assertEqual(b"\x01\x02", cursor.copy_bytes())
        cursor.advance()
        self.assertTrue(cursor.get_bool())
        cursor.advance()
        self.assertEqual(1.5, cursor.get_float())
        cursor.advance()
        self.assertTrue(cursor.at_end())
        with self.assertRaises(CodecError) as cm:
            cursor.advance()
        self.assertIs(CodecErrorCode.ADVANCE_PAST_EOF, cm.exception.code)

    def test_getters_do_not_move(self):
        cursor = cursor_over(b"\x0a")
        self.assertEqual(10, cursor.get_uint())
        self.assertEqual(10, cursor.get_int())
        self.assertEqual(0, cursor.offset)

    def test_wrong_type(self):
        cursor = cursor_over(b"\x0a")
        with self.assertRaises(CodecError) as cm:
            cursor.copy_text()
        self.assertIs(CodecErrorCode.ILLEGAL_TYPE, cm.exception.code)

    def test_truncated_input(self):
        for data in (b"\x19\x01", b"\x65Hel", b"\xfb\x3f\xf8"):
            cursor = cursor_over(data)
            with self.assertRaises(CodecError) as cm:
                cursor.advance()
            self.assertIs(CodecErrorCode.UNEXPECTED_EOF, cm.exception.code)

    def test_int64_overflow(self):
        cursor = cursor_over(b"\x1b\xff\xff\xff\xff\xff\xff\xff\xff")
        self.assertEqual(2 ** 64 - 1, cursor.get_uint())
        with self.assertRaises(CodecError) as cm:
            cursor.get_int()
        self.assertIs(CodecErrorCode.DATA_TOO_LARGE, cm.exception.code)

    def test_invalid_utf8(self):
        cursor = cursor_over(b"\x62\xc3\x28")
        with self.assertRaises(CodecError) as cm:
            cursor.copy_text()
        self.assertIs(CodecErrorCode.INVALID_UTF8_TEXT_STRING, cm.exception.code)

    def test_chunked_strings(self):
        cursor = cursor_over(b"\x7f\x62he\x63llo\xff\x5f\x41\x01\x41\x02\xff")
        self.assertEqual(5, cursor.get_string_length())
        self.assertEqual("hello", cursor.copy_text())
        cursor.advance()
        self.assertEqual(b"\x01\x02", cursor.copy_bytes())
        cursor.advance()
        self.assertTrue(cursor.at_end())

    def test_advance_skips_nested_containers(self):
        """Test that advancing over a container skips its whole
        subtree, two levels deep."""
        # [[1, [2, 3]], {"k": [4, {"x": 5}]}, 6]
        data = (b"\x83\x82\x01\x82\x02\x03"
                b"\xa1\x61k\x82\x04\xa1\x61x\x05"
                b"\x06")
        cursor = cursor_over(data).enter_container()
        self.assertEqual(3, cursor.remaining)
        cursor.advance()
        self.assertTrue(cursor.is_map())
        cursor.advance()
        self.assertEqual(6, cursor.get_uint())
        cursor.advance()
        self.assertTrue(cursor.at_end())

    def test_advance_skips_indefinite_containers_and_tags(self):
        # [_ 1, {_ "a": 2}], tag 1 (uint32 1), 5
        data = b"\x9f\x01\xbf\x61a\x02\xff\xff\xc1\x1a\x00\x00\x00\x01\x05"
        cursor = cursor_over(data)
        cursor.advance()
        self.assertTrue(cursor.is_tag())
        cursor.advance()
        self.assertEqual(5, cursor.get_uint())

    def test_indefinite_container_end(self):
        cursor = cursor_over(b"\x9f\x01\xff")
        inner = cursor.enter_container()
        self.assertFalse(inner.at_end())
        inner.advance()
        self.assertTrue(inner.at_end())
        cursor.leave_container(inner)
        self.assertTrue(cursor.at_end())

    def test_container_lengths(self):
        cursor = cursor_over(b"\xa2\x01\x02\x03\x04")
        self.assertEqual(2, cursor.get_map_length())
        self.assertRaises(CodecError, cursor.get_array_length)
        self.assertEqual(4, cursor.enter_container().remaining)
        with self.assertRaises(CodecError) as cm:
            cursor_over(b"\xbf\xff").get_map_length()
        self.assertIs(CodecErrorCode.UNKNOWN_LENGTH, cm.exception.code)

    def test_leave_ignores_unread_elements(self):
        source = codec.ByteSource(b"\x83\x01\x02\x03\x04")
        cursor = codec.Cursor(source)
        inner = cursor.enter_container()
        inner.advance()
        cursor.leave_container(inner)
        self.assertEqual(4, cursor.get_uint())
        self.assertEqual(1, source.entered)
        self.assertEqual(1, source.left)

    def test_abandon_malformed_container(self):
        source = codec.ByteSource(b"\x82\x01")
        cursor = codec.Cursor(source)
        inner = cursor.enter_container()
        self.assertRaises(CodecError, cursor.leave_container, inner)
        cursor.abandon_container(inner)
        self.assertTrue(cursor.at_end())
        self.assertEqual(1, source.left)

    def test_unexpected_break(self):
        with self.assertRaises(CodecError) as cm:
            cursor_over(b"\xff").advance()
        self.assertIs(CodecErrorCode.UNEXPECTED_BREAK, cm.exception.code)

    def test_nesting_limit(self):
        depth = codec.MAX_NESTING + 2
        data = b"\x81" * depth + b"\x00"
        with self.assertRaises(CodecError) as cm:
            cursor_over(data).advance()
        self.assertIs(CodecErrorCode.NESTING_TOO_DEEP, cm.exception.code)


if __name__ == "__main__":
    unittest.main()
