"""Low-level CBOR codec.

This module knows the bytes: initial bytes, argument widths, item counts
and buffer bounds. It exposes a small cursor-oriented API that the
streaming contexts in :mod:`pycborstream.encoder` and
:mod:`pycborstream.decoder` drive one item at a time. Nothing here knows
about contexts, wrappers or records.
"""

import logging
from enum import Enum
from struct import Struct, error as struct_error


log = logging.getLogger(__name__)


# Containers nested deeper than this are refused while skipping. Kept
# well below the interpreter recursion limit.
MAX_NESTING = 512


class CodecErrorCode(Enum):
    UNEXPECTED_EOF = "unexpected end of data"
    UNEXPECTED_BREAK = "unexpected break byte"
    ILLEGAL_TYPE = "item has the wrong type for this operation"
    ILLEGAL_NUMBER = "illegal number"
    ILLEGAL_SIMPLE_TYPE = "illegal simple type"
    UNKNOWN_LENGTH = "container has no declared length"
    ADVANCE_PAST_EOF = "no more items in this container"
    DATA_TOO_LARGE = "value does not fit in 64 bits"
    NESTING_TOO_DEEP = "containers nested too deeply"
    INVALID_UTF8_TEXT_STRING = "invalid UTF-8 in text string"
    OUT_OF_MEMORY = "encode buffer exhausted"
    TOO_MANY_ITEMS = "too many items added to container"
    TOO_FEW_ITEMS = "too few items added to container"
    CONTAINER_CLOSED = "container is already closed"


class CodecError(Exception):
    """Raised when the codec refuses a read or a write. The reason is
    carried in the ``code`` attribute, a :class:`CodecErrorCode`."""

    def __init__(self, code, detail=None):
        self.code = code
        message = code.value
        if detail:
            message = "%s: %s" % (message, detail)
        super().__init__(message)


class StreamStruct(Struct):
    """Subclass of ``struct.Struct`` with a method to read from a
    bytes-like buffer at an offset."""

    def unpack_at(self, data, offset):
        """Unpack values from *data* starting at *offset*. This method
        raises CodecError if not enough bytes are left in *data*."""
        if offset + self.size > len(data):
            raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
        return self.unpack_from(data, offset)


# Pre-compiled Struct instances.
uint8_struct = StreamStruct('>B')
uint16_struct = StreamStruct('>H')
uint32_struct = StreamStruct('>I')
uint64_struct = StreamStruct('>Q')
half_struct = StreamStruct('>e')
float_struct = StreamStruct('>f')
double_struct = StreamStruct('>d')


# Major types.
UNSIGNED_INTEGER = 0
NEGATIVE_INTEGER = 1
BYTE_STRING = 2
TEXT_STRING = 3
ARRAY = 4
MAP = 5
TAG = 6
SIMPLE = 7

# Additional information values.
ONE_BYTE = 24
TWO_BYTES = 25
FOUR_BYTES = 26
EIGHT_BYTES = 27
INDEFINITE = 31

# Simple values and floating point encodings under major type 7.
FALSE = 20
TRUE = 21
NULL = 22
UNDEFINED = 23
HALF_FLOAT = 25
SINGLE_FLOAT = 26
DOUBLE_FLOAT = 27

BREAK_BYTE = 0xff

_ARGUMENT_STRUCTS = {
    ONE_BYTE: uint8_struct,
    TWO_BYTES: uint16_struct,
    FOUR_BYTES: uint32_struct,
    EIGHT_BYTES: uint64_struct,
    }

UINT64_MAX = 0xFFFFFFFFFFFFFFFF
INT64_MIN = -0x8000000000000000
INT64_MAX = 0x7FFFFFFFFFFFFFFF


def initial_byte(major, info):
    return (major << 5) | info


def encode_head(major, argument):
    """Return the initial byte plus argument bytes for a data item of
    type *major*, using the shortest form that holds *argument*."""
    if argument < 0:
        raise CodecError(CodecErrorCode.ILLEGAL_NUMBER, argument)
    if argument < ONE_BYTE:
        return bytes([initial_byte(major, argument)])
    elif argument <= 0xFF:
        return bytes([initial_byte(major, ONE_BYTE)]) + uint8_struct.pack(argument)
    elif argument <= 0xFFFF:
        return bytes([initial_byte(major, TWO_BYTES)]) + uint16_struct.pack(argument)
    elif argument <= 0xFFFFFFFF:
        return bytes([initial_byte(major, FOUR_BYTES)]) + uint32_struct.pack(argument)
    elif argument <= UINT64_MAX:
        return bytes([initial_byte(major, EIGHT_BYTES)]) + uint64_struct.pack(argument)
    raise CodecError(CodecErrorCode.DATA_TOO_LARGE, argument)


class ByteSink:
    """Pre-sized output buffer shared by every :class:`Writer` of one
    encode operation.

    The sink never grows; a write that does not fit fails with
    ``OUT_OF_MEMORY`` and leaves the buffer untouched. The ``opened``
    and ``closed`` counters audit container balance."""

    def __init__(self, capacity):
        if capacity < 0:
            raise ValueError("Buffer size must be non-negative.")
        self.buffer = bytearray(capacity)
        self.capacity = capacity
        self.used = 0
        self.opened = 0
        self.closed = 0

    @property
    def open_containers(self):
        return self.opened - self.closed

    def write(self, data):
        end = self.used + len(data)
        if end > self.capacity:
            raise CodecError(
                CodecErrorCode.OUT_OF_MEMORY,
                "%d bytes needed, %d available" % (
                    len(data), self.capacity - self.used))
        self.buffer[self.used:end] = data
        self.used = end

    def getvalue(self):
        return bytes(self.buffer[:self.used])


class Writer:
    """Write position for one nesting level of an encode operation.

    The root writer accepts any number of items. A writer returned by
    :meth:`open_array` or :meth:`open_map` with a declared length counts
    the items written through it; with ``length=None`` the container is
    written with an indefinite-length header and terminated by a break
    byte on close."""

    def __init__(self, sink, remaining=None, indefinite=False, is_map=False):
        self.sink = sink
        self.remaining = remaining
        self.indefinite = indefinite
        self.is_map = is_map
        self.closed = False
        self.items = 0

    def _write_item(self, data):
        if self.closed:
            raise CodecError(CodecErrorCode.CONTAINER_CLOSED)
        if self.remaining is not None and self.remaining == 0:
            raise CodecError(CodecErrorCode.TOO_MANY_ITEMS)
        self.sink.write(data)
        self.items += 1
        if self.remaining is not None:
            self.remaining -= 1

    def write_uint(self, value):
        if value < 0:
            raise CodecError(
                CodecErrorCode.ILLEGAL_NUMBER,
                "%d is not an unsigned integer" % value)
        self._write_item(encode_head(UNSIGNED_INTEGER, value))

    def write_int(self, value):
        if not (INT64_MIN <= value <= INT64_MAX):
            raise CodecError(CodecErrorCode.DATA_TOO_LARGE, value)
        if value >= 0:
            self._write_item(encode_head(UNSIGNED_INTEGER, value))
        else:
            # Negative integer n is written as major type 1 with -1 - n.
            self._write_item(encode_head(NEGATIVE_INTEGER, -1 - value))

    def write_bytes(self, value):
        self._write_item(encode_head(BYTE_STRING, len(value)) + bytes(value))

    def write_text(self, value):
        try:
            raw = value.encode('utf_8')
        except UnicodeEncodeError as e:
            raise CodecError(CodecErrorCode.INVALID_UTF8_TEXT_STRING, str(e)) from e
        self._write_item(encode_head(TEXT_STRING, len(raw)) + raw)

    def write_bool(self, value):
        self._write_item(bytes([initial_byte(SIMPLE, TRUE if value else FALSE)]))

    def write_null(self):
        self._write_item(bytes([initial_byte(SIMPLE, NULL)]))

    def write_undefined(self):
        self._write_item(bytes([initial_byte(SIMPLE, UNDEFINED)]))

    def write_float(self, value):
        try:
            packed = float_struct.pack(value)
        except (OverflowError, struct_error) as e:
            raise CodecError(CodecErrorCode.ILLEGAL_NUMBER, str(e)) from e
        self._write_item(bytes([initial_byte(SIMPLE, SINGLE_FLOAT)]) + packed)

    def write_double(self, value):
        self._write_item(
            bytes([initial_byte(SIMPLE, DOUBLE_FLOAT)]) + double_struct.pack(value))

    def _open(self, major, length):
        if length is None:
            head = bytes([initial_byte(major, INDEFINITE)])
            remaining = None
        else:
            head = encode_head(major, length)
            remaining = length * 2 if major == MAP else length
        self._write_item(head)
        self.sink.opened += 1
        log.debug("opened %s of length %s at offset %d",
                  "map" if major == MAP else "array", length, self.sink.used)
        return Writer(self.sink, remaining, length is None, major == MAP)

    def open_array(self, length=None):
        """Write an array header and return the writer for its elements.
        *length* is the number of elements, or None for an
        indefinite-length array."""
        return self._open(ARRAY, length)

    def open_map(self, length=None):
        """Write a map header and return the writer for its entries.
        *length* is the number of key-value pairs, or None for an
        indefinite-length map."""
        return self._open(MAP, length)

    def close_container(self, child, checked=True):
        """Finish the container written through *child*.

        With *checked* true a definite-length container that received
        fewer items than declared, or a map that received a key without
        a value, fails with ``TOO_FEW_ITEMS`` and stays open. With
        *checked* false the container is always marked closed; a break
        byte that no longer fits in the buffer is dropped."""
        if child.closed:
            raise CodecError(CodecErrorCode.CONTAINER_CLOSED)
        if checked:
            if child.remaining:
                raise CodecError(
                    CodecErrorCode.TOO_FEW_ITEMS,
                    "%d item(s) missing" % child.remaining)
            if child.indefinite and child.is_map and child.items % 2:
                raise CodecError(CodecErrorCode.TOO_FEW_ITEMS, "map key without value")
        if child.indefinite:
            try:
                self.sink.write(bytes([BREAK_BYTE]))
            except CodecError:
                if checked:
                    raise
                log.warning("no room for the break byte of an abandoned container")
        child.closed = True
        self.sink.closed += 1
        log.debug("closed container after %d item(s)", child.items)


class ByteSource:
    """Input bytes shared by every :class:`Cursor` of one decode
    operation, with ``entered``/``left`` counters auditing container
    balance."""

    def __init__(self, data):
        self.data = data
        self.entered = 0
        self.left = 0

    def __len__(self):
        return len(self.data)


def read_head(data, offset):
    """Parse the initial byte and argument of the item at *offset*.

    Returns ``(major, info, argument, next_offset)``. The argument is
    None for the indefinite-length marker and for the break byte."""
    if offset >= len(data):
        raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
    ib = data[offset]
    major = ib >> 5
    info = ib & 0x1f
    offset += 1
    if info < ONE_BYTE:
        return major, info, info, offset
    if info in _ARGUMENT_STRUCTS:
        st = _ARGUMENT_STRUCTS[info]
        argument = st.unpack_at(data, offset)[0]
        return major, info, argument, offset + st.size
    if info == INDEFINITE:
        if major in (UNSIGNED_INTEGER, NEGATIVE_INTEGER, TAG):
            raise CodecError(CodecErrorCode.ILLEGAL_NUMBER, "indefinite integer or tag")
        return major, info, None, offset
    raise CodecError(
        CodecErrorCode.ILLEGAL_NUMBER, "reserved additional information %d" % info)


def skip_item(data, offset, depth=0):
    """Return the offset just past the complete item at *offset*,
    including the whole subtree of a container or tag."""
    if depth > MAX_NESTING:
        raise CodecError(CodecErrorCode.NESTING_TOO_DEEP)
    major, info, argument, offset = read_head(data, offset)
    if major in (UNSIGNED_INTEGER, NEGATIVE_INTEGER):
        return offset
    if major in (BYTE_STRING, TEXT_STRING):
        if argument is None:
            return _skip_chunks(data, offset, major)
        end = offset + argument
        if end > len(data):
            raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
        return end
    if major in (ARRAY, MAP):
        if argument is None:
            while not _at_break(data, offset):
                offset = skip_item(data, offset, depth + 1)
            return offset + 1
        count = argument * 2 if major == MAP else argument
        for _ in range(count):
            offset = skip_item(data, offset, depth + 1)
        return offset
    if major == TAG:
        return skip_item(data, offset, depth + 1)
    # Major type 7: the argument (if any) already covered the payload.
    if info == INDEFINITE:
        raise CodecError(CodecErrorCode.UNEXPECTED_BREAK)
    if info == ONE_BYTE and argument < 32:
        raise CodecError(CodecErrorCode.ILLEGAL_SIMPLE_TYPE)
    return offset


def _at_break(data, offset):
    if offset >= len(data):
        raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
    return data[offset] == BREAK_BYTE


def _iter_chunks(data, offset, major):
    """Yield ``(start, end)`` for every chunk of an indefinite-length
    string whose chunks start at *offset*, then the offset past the
    break byte."""
    while not _at_break(data, offset):
        chunk_major, _, length, offset = read_head(data, offset)
        if chunk_major != major or length is None:
            raise CodecError(
                CodecErrorCode.ILLEGAL_TYPE, "malformed indefinite-length string")
        end = offset + length
        if end > len(data):
            raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
        yield offset, end
        offset = end
    yield offset + 1, None


def _skip_chunks(data, offset, major):
    for start, end in _iter_chunks(data, offset, major):
        if end is None:
            return start


class Cursor:
    """Read position inside one nesting level of a decode operation.

    ``remaining`` counts the items left in a definite-length container;
    it is None at the root and inside indefinite-length containers. The
    getters do not move the cursor; :meth:`advance` does."""

    def __init__(self, source, offset=0, remaining=None, indefinite=False):
        self.source = source
        self.offset = offset
        self.remaining = remaining
        self.indefinite = indefinite

    @property
    def data(self):
        return self.source.data

    def at_end(self):
        if self.remaining is not None:
            return self.remaining == 0
        if self.indefinite:
            return self.offset >= len(self.data) or self.data[self.offset] == BREAK_BYTE
        return self.offset >= len(self.data)

    def _peek(self):
        if self.at_end() or self.offset >= len(self.data):
            return None, None
        ib = self.data[self.offset]
        return ib >> 5, ib & 0x1f

    def is_uint(self):
        return self._peek()[0] == UNSIGNED_INTEGER

    def is_negative_int(self):
        return self._peek()[0] == NEGATIVE_INTEGER

    def is_int(self):
        return self._peek()[0] in (UNSIGNED_INTEGER, NEGATIVE_INTEGER)

    def is_bytes(self):
        return self._peek()[0] == BYTE_STRING

    def is_text(self):
        return self._peek()[0] == TEXT_STRING

    def is_array(self):
        return self._peek()[0] == ARRAY

    def is_map(self):
        return self._peek()[0] == MAP

    def is_container(self):
        return self._peek()[0] in (ARRAY, MAP)

    def is_tag(self):
        return self._peek()[0] == TAG

    def _is_simple(self, info):
        return self._peek() == (SIMPLE, info)

    def is_bool(self):
        return self._is_simple(FALSE) or self._is_simple(TRUE)

    def is_null(self):
        return self._is_simple(NULL)

    def is_undefined(self):
        return self._is_simple(UNDEFINED)

    def is_half_float(self):
        return self._is_simple(HALF_FLOAT)

    def is_float(self):
        return self._is_simple(SINGLE_FLOAT)

    def is_double(self):
        return self._is_simple(DOUBLE_FLOAT)

    def _head(self, *majors):
        if self.at_end():
            raise CodecError(CodecErrorCode.ADVANCE_PAST_EOF)
        head = read_head(self.data, self.offset)
        if head[0] not in majors:
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return head

    def get_uint(self):
        return self._head(UNSIGNED_INTEGER)[2]

    def get_int(self):
        major, _, argument, _ = self._head(UNSIGNED_INTEGER, NEGATIVE_INTEGER)
        value = argument if major == UNSIGNED_INTEGER else -1 - argument
        if not (INT64_MIN <= value <= INT64_MAX):
            raise CodecError(CodecErrorCode.DATA_TOO_LARGE, value)
        return value

    def get_bool(self):
        if not self.is_bool():
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return self._peek()[1] == TRUE

    def get_float(self):
        if not self.is_float():
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return float_struct.unpack_at(self.data, self.offset + 1)[0]

    def get_double(self):
        if not self.is_double():
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return double_struct.unpack_at(self.data, self.offset + 1)[0]

    def get_half_float(self):
        if not self.is_half_float():
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return half_struct.unpack_at(self.data, self.offset + 1)[0]

    def _string_chunks(self, major):
        _, _, length, offset = self._head(major)
        if length is not None:
            end = offset + length
            if end > len(self.data):
                raise CodecError(CodecErrorCode.UNEXPECTED_EOF)
            return [(offset, end)]
        return [(s, e) for s, e in _iter_chunks(self.data, offset, major)
                if e is not None]

    def get_string_length(self):
        """Return the total byte length of the byte or text string at
        the cursor, summing the chunks of an indefinite-length string."""
        major = self._peek()[0]
        if major not in (BYTE_STRING, TEXT_STRING):
            raise CodecError(CodecErrorCode.ILLEGAL_TYPE)
        return sum(e - s for s, e in self._string_chunks(major))

    def copy_bytes(self):
        data = self.data
        return b"".join(bytes(data[s:e]) for s, e in self._string_chunks(BYTE_STRING))

    def copy_text(self):
        data = self.data
        raw = b"".join(bytes(data[s:e]) for s, e in self._string_chunks(TEXT_STRING))
        try:
            return raw.decode('utf_8')
        except UnicodeDecodeError as e:
            raise CodecError(CodecErrorCode.INVALID_UTF8_TEXT_STRING, str(e)) from e

    def _container_length(self, major):
        length = self._head(major)[2]
        if length is None:
            raise CodecError(CodecErrorCode.UNKNOWN_LENGTH)
        return length

    def get_array_length(self):
        return self._container_length(ARRAY)

    def get_map_length(self):
        """Return the number of key-value pairs of the map at the
        cursor."""
        return self._container_length(MAP)

    def advance(self):
        """Move past the current item, skipping a container's whole
        subtree."""
        if self.at_end():
            raise CodecError(CodecErrorCode.ADVANCE_PAST_EOF)
        self.offset = skip_item(self.data, self.offset)
        if self.remaining is not None:
            self.remaining -= 1

    def enter_container(self):
        """Return a cursor positioned at the first element of the array
        or map at this cursor. This cursor does not move."""
        major, _, length, offset = self._head(ARRAY, MAP)
        if length is not None and major == MAP:
            length *= 2
        self.source.entered += 1
        log.debug("entered %s at offset %d",
                  "map" if major == MAP else "array", self.offset)
        return Cursor(self.source, offset, length, length is None)

    def leave_container(self, child):
        """Move this cursor past the container that *child* was entered
        from, however many of its elements *child* consumed."""
        self.advance()
        self.source.left += 1
        log.debug("left container, parent now at offset %d", self.offset)

    def abandon_container(self, child):
        """Like :meth:`leave_container` but never fails: if the
        container cannot be skipped the cursor is exhausted instead."""
        try:
            self.advance()
        except CodecError as e:
            log.warning("cannot skip abandoned container (%s); "
                        "discarding the rest of the input", e)
            self.offset = len(self.data)
            self.remaining = 0 if self.remaining is not None else None
        self.source.left += 1
