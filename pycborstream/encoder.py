"""Encode contexts.

Records are written as a chain of calls that returns the context to
continue with::

    encoder = EncoderBuffer()
    (encoder.begin_array(3)
        .append(bytestring(example.data))
        .append(sint(example.value))
        .append(example.inner)
     .end())
    encoded = encoder.getvalue()
"""

from .codec import ByteSink, CodecError, Writer
from .context import Context
from .errors import EncodeError, ErrorKind, UsageError
from .records import find_record_type
from .values import Kind, NULL, UNDEFINED, Value, native_value


DEFAULT_BUFFER_SIZE = 4096


_writers = {
    Kind.UINT: Writer.write_uint,
    Kind.INT: Writer.write_int,
    Kind.TEXT: Writer.write_text,
    Kind.BYTES: Writer.write_bytes,
    Kind.BOOL: Writer.write_bool,
    Kind.FLOAT: Writer.write_float,
    Kind.DOUBLE: Writer.write_double,
    Kind.NULL: lambda writer, value: writer.write_null(),
    Kind.UNDEFINED: lambda writer, value: writer.write_undefined(),
    }


class EncodeContext(Context):
    """Write position at one nesting level of an encode operation."""

    error_class = EncodeError

    def __init__(self, writer, parent=None, records=None):
        super().__init__(parent, records)
        self.writer = writer

    def append(self, obj):
        """Write *obj* and return this context.

        *obj* may be a :class:`~pycborstream.values.Value`, an instance
        of a registered record type, or a plain ``None``, ``bool``,
        ``int``, ``float``, ``str`` or bytes-like object, which is
        written with its natural kind."""
        if isinstance(obj, Value):
            return self._append_value(obj)
        if find_record_type(obj, self.records) is not None:
            return self.append_record(obj)
        value = native_value(obj)
        if value is None:
            self._check_active()
            raise self._abort(TypeError("Object is not serializable."))
        return self._append_value(value)

    def _append_value(self, value):
        self._check_active()
        try:
            _writers[value.kind](self.writer, value.value)
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        return self

    def append_null(self):
        return self._append_value(NULL)

    def append_undefined(self):
        return self._append_value(UNDEFINED)

    def append_record(self, obj):
        """Write *obj* with the encode routine of its registered record
        type and return the context that routine finished on."""
        self._check_active()
        record_type = find_record_type(obj, self.records)
        if record_type is None:
            raise self._abort(TypeError(
                "No record type is registered for %s." % type(obj).__name__))
        return self._run_record(record_type.encode, obj)

    def _begin(self, open_container, size):
        self._check_active()
        try:
            writer = open_container(self.writer, size)
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        return self._nest(EncodeContext(writer, parent=self))

    def begin_array(self, size=None):
        """Open an array of *size* elements, or of indefinite length if
        *size* is None, and return the nested context that writes its
        elements. This context may not be used again until the nested
        one is finalized."""
        return self._begin(Writer.open_array, size)

    def begin_map(self, size=None):
        """Open a map of *size* key-value pairs, or of indefinite length
        if *size* is None, and return the nested context that writes its
        keys and values."""
        return self._begin(Writer.open_map, size)

    def end(self):
        """Close this context's container and return the parent. On the
        root, and on a context that was already finalized, this does
        nothing except return the context to continue with."""
        return self._finalize()

    def _close_container(self):
        self.parent.writer.close_container(self.writer)

    def _abandon_container(self):
        self.parent.writer.close_container(self.writer, checked=False)


class EncoderBuffer(EncodeContext):
    """Root encode context that owns a pre-sized output buffer."""

    def __init__(self, buffer_size=DEFAULT_BUFFER_SIZE, records=None):
        self.sink = ByteSink(buffer_size)
        super().__init__(Writer(self.sink), records=records)

    @property
    def buffer(self):
        return self.sink.buffer

    @property
    def buffer_size(self):
        return self.sink.capacity

    @property
    def bytes_used(self):
        return self.sink.used

    @property
    def open_containers(self):
        return self.sink.open_containers

    def getvalue(self):
        """Return the encoded bytes. All nested contexts must have been
        finalized."""
        if self.child is not None:
            raise UsageError(
                "Cannot read the encoded bytes while a container is open.")
        return self.sink.getvalue()

    def close(self):
        """Force-close every container still open in this buffer."""
        self._release()
