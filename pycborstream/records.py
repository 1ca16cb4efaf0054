from collections import namedtuple


class RecordType(namedtuple("RecordType", ["type", "encode", "decode"])):
    """Encode and decode routines for one Python record type.

    ``encode(obj, ctx)`` appends *obj* to the encode context *ctx* and
    returns the context to continue with. ``decode(obj, ctx)`` fills
    *obj* in place from the decode context *ctx* and returns the
    context to continue with. The two routines must agree on the order
    and number of items."""

    def __init__(self, *args, **kwargs):
        validate_record_type(self)


def validate_record_type(record_type):
    if not isclassinfo(record_type.type):
        raise TypeError(
            "Record type has an invalid 'type' field: %s" %
            (record_type.type,))
    if not callable(record_type.encode):
        raise TypeError(
            "Record type has a non-callable 'encode' field: %s" %
            record_type.encode)
    if not callable(record_type.decode):
        raise TypeError(
            "Record type has a non-callable 'decode' field: %s" %
            record_type.decode)


def isclassinfo(classinfo):
    """Test whether an object is a valid second argument to the
    `isinstance` builtin function."""
    if isinstance(classinfo, tuple):
        return all(map(isclassinfo, classinfo))
    else:
        return isinstance(classinfo, type)


def find_record_type(obj, records):
    for rt in records:
        if isinstance(obj, rt.type):
            return rt
    return None


# No record types are known unless the caller passes some.
basic_records = ()
