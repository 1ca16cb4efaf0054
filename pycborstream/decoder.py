"""Decode contexts.

Decoding mirrors encoding: the record's decode routine issues the same
sequence of items as its encode routine, entering and leaving the same
containers::

    decoder = DecoderBuffer(encoded)
    (decoder.enter()
        .skip().extract(Slot(Kind.TEXT, inner, "name"))
        .skip().extract(Slot(Kind.UINT, inner, "value"))
     .leave())
"""

from .codec import ByteSource, CodecError, CodecErrorCode, Cursor, skip_item
from .context import Context
from .errors import DecodeError, ErrorKind
from .records import find_record_type
from .values import Kind, Slot, scalar_kind


_readers = {
    Kind.UINT: Cursor.get_uint,
    Kind.INT: Cursor.get_int,
    Kind.TEXT: Cursor.copy_text,
    Kind.BYTES: Cursor.copy_bytes,
    Kind.BOOL: Cursor.get_bool,
    Kind.FLOAT: Cursor.get_float,
    Kind.DOUBLE: Cursor.get_double,
    Kind.NULL: lambda cursor: None,
    Kind.UNDEFINED: lambda cursor: None,
    }


# Checked in order; the first predicate that holds names the kind.
_kind_predicates = (
    (Kind.UINT, Cursor.is_uint),
    (Kind.INT, Cursor.is_negative_int),
    (Kind.TEXT, Cursor.is_text),
    (Kind.BYTES, Cursor.is_bytes),
    (Kind.BOOL, Cursor.is_bool),
    (Kind.FLOAT, Cursor.is_float),
    (Kind.DOUBLE, Cursor.is_double),
    (Kind.NULL, Cursor.is_null),
    (Kind.UNDEFINED, Cursor.is_undefined),
    (Kind.ARRAY, Cursor.is_array),
    (Kind.MAP, Cursor.is_map),
    )


def accepts(wanted, found):
    """Test whether an item of kind *found* may be read as *wanted*.
    Signed integer reads take any integer; every other kind must match
    exactly."""
    if wanted is Kind.INT:
        return found in (Kind.INT, Kind.UINT)
    return wanted is found


class DecodeContext(Context):
    """Read position at one nesting level of a decode operation."""

    error_class = DecodeError

    def __init__(self, cursor, parent=None, records=None):
        super().__init__(parent, records)
        self.cursor = cursor

    # Introspection. None of these consume the current item.

    def kind(self):
        """Return the :class:`~pycborstream.values.Kind` of the current
        item, or None at the end of the container or for items without
        a kind of their own (tags, half floats, other simple values)."""
        for kind, predicate in _kind_predicates:
            if predicate(self.cursor):
                return kind
        return None

    def at_end(self):
        return self.cursor.at_end()

    def is_map(self):
        return self.cursor.is_map()

    def is_array(self):
        return self.cursor.is_array()

    def is_container(self):
        return self.cursor.is_container()

    def is_text(self):
        return self.cursor.is_text()

    is_string = is_text

    def is_bytes(self):
        return self.cursor.is_bytes()

    def is_int(self):
        return self.cursor.is_int()

    def is_uint(self):
        return self.cursor.is_uint()

    def is_bool(self):
        return self.cursor.is_bool()

    def is_float(self):
        return self.cursor.is_float()

    def is_double(self):
        return self.cursor.is_double()

    def is_null(self):
        return self.cursor.is_null()

    def is_undefined(self):
        return self.cursor.is_undefined()

    def _length(self, is_kind, get_length, what):
        self._check_active()
        if not is_kind(self.cursor):
            raise self._failure(
                ErrorKind.LENGTH_UNKNOWN,
                message="current item is not %s" % what)
        try:
            return get_length(self.cursor)
        except CodecError as e:
            if e.code is CodecErrorCode.UNKNOWN_LENGTH:
                raise self._failure(ErrorKind.LENGTH_UNKNOWN, cause=e) from e
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e

    def get_array_length(self):
        return self._length(Cursor.is_array, Cursor.get_array_length, "an array")

    def get_map_length(self):
        """Return the number of key-value pairs of the map at the
        cursor."""
        return self._length(Cursor.is_map, Cursor.get_map_length, "a map")

    # Reading.

    def read(self, kind):
        """Read the current item as *kind*, advance past it and return
        its value. The cursor does not move if the item has another
        kind."""
        kind = scalar_kind(kind)
        self._check_active()
        found = self.kind()
        if found is None and self.cursor.at_end():
            e = CodecError(CodecErrorCode.ADVANCE_PAST_EOF)
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        if found is None:
            self._check_malformed()
        if not accepts(kind, found):
            raise self._failure(
                ErrorKind.TYPE_MISMATCH,
                message="expected %s, found %s" % (
                    kind.value, found.value if found is not None else "unsupported item"))
        try:
            value = _readers[kind](self.cursor)
            self.cursor.advance()
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        return value

    def _check_malformed(self):
        """Fail with CODEC_REJECTED if the item at the cursor, which has
        no kind of its own, is not a well-formed item either, such as a stray
        break byte or truncated input."""
        try:
            skip_item(self.cursor.data, self.cursor.offset)
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e

    def read_uint(self):
        return self.read(Kind.UINT)

    def read_int(self):
        return self.read(Kind.INT)

    def read_text(self):
        return self.read(Kind.TEXT)

    def read_bytes(self):
        return self.read(Kind.BYTES)

    def read_bool(self):
        return self.read(Kind.BOOL)

    def read_float(self):
        return self.read(Kind.FLOAT)

    def read_double(self):
        return self.read(Kind.DOUBLE)

    def extract(self, target):
        """Read the current item into *target* and return this context.

        *target* is a :class:`~pycborstream.values.Slot` or an instance
        of a registered record type, which is filled in place."""
        if isinstance(target, Slot):
            target.set(self.read(target.kind))
            return self
        if find_record_type(target, self.records) is not None:
            return self.extract_record(target)
        self._check_active()
        raise self._abort(TypeError("Object is not deserializable."))

    def extract_record(self, obj):
        """Fill *obj* with the decode routine of its registered record
        type and return the context that routine finished on."""
        self._check_active()
        record_type = find_record_type(obj, self.records)
        if record_type is None:
            raise self._abort(TypeError(
                "No record type is registered for %s." % type(obj).__name__))
        return self._run_record(record_type.decode, obj)

    def skip(self):
        """Advance past the current item, including the whole subtree of
        a container, and return this context."""
        self._check_active()
        try:
            self.cursor.advance()
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        return self

    # Nesting.

    def enter(self):
        """Return a nested context positioned at the first element of
        the array or map at the cursor. This context may not be used
        again until the nested one is finalized."""
        self._check_active()
        if not self.cursor.is_container():
            if not self.cursor.at_end() and self.kind() is None:
                self._check_malformed()
            raise self._failure(
                ErrorKind.NOT_A_CONTAINER,
                message="cannot enter %s" % (
                    self.kind().value if self.kind() is not None else "this item"))
        try:
            cursor = self.cursor.enter_container()
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        return self._nest(DecodeContext(cursor, parent=self))

    def leave(self):
        """Move the parent past this context's container, however many
        of its elements were read, and return the parent. On the root,
        and on a context that was already finalized, this does nothing
        except return the context to continue with."""
        return self._finalize()

    def _close_container(self):
        self.parent.cursor.leave_container(self.cursor)

    def _abandon_container(self):
        self.parent.cursor.abandon_container(self.cursor)


class DecoderBuffer(DecodeContext):
    """Root decode context over caller-supplied bytes.

    The bytes are borrowed, not copied; they must stay unchanged while
    the buffer is in use."""

    def __init__(self, data, records=None):
        self.source = ByteSource(data)
        super().__init__(Cursor(self.source), records=records)

    def close(self):
        """Leave every container still entered in this buffer."""
        self._release()
