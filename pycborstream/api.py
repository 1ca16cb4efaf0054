"""One-shot helpers around :class:`EncoderBuffer` and
:class:`DecoderBuffer` for a single record or value."""

from .decoder import DecoderBuffer
from .encoder import DEFAULT_BUFFER_SIZE, EncoderBuffer
from .errors import ErrorKind


def dumps(obj, records=None, buffer_size=DEFAULT_BUFFER_SIZE):
    """Serialize *obj* to a ``bytes`` instance.

    *obj* is anything :meth:`EncodeContext.append` accepts. This
    function raises EncodeError if the encoding does not fit in
    *buffer_size* bytes."""
    with EncoderBuffer(buffer_size, records) as encoder:
        encoder.append(obj)
    return encoder.getvalue()


def dump(obj, fp, records=None, buffer_size=DEFAULT_BUFFER_SIZE):
    """Serialize *obj* to a writeable file-like object *fp*, flushing
    the output buffer after write."""
    fp.write(dumps(obj, records, buffer_size))
    fp.flush()


def loads(data, obj, records=None):
    """Deserialize the bytes-like object *data* into *obj* and return
    *obj*.

    *obj* is a :class:`~pycborstream.values.Slot` or an instance of a
    registered record type. Any item left over after *obj* is a
    DecodeError."""
    with DecoderBuffer(data, records) as decoder:
        decoder.extract(obj)
        if decoder.child is None and not decoder.at_end():
            raise decoder._failure(
                ErrorKind.CODEC_REJECTED,
                message="trailing data after offset %d" % decoder.cursor.offset)
    return obj


def load(fp, obj, records=None):
    """Deserialize the contents of a readable file-like object *fp*
    into *obj* and return *obj*."""
    return loads(fp.read(), obj, records)
