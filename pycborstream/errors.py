from enum import Enum


class ErrorKind(Enum):
    CODEC_REJECTED = "codec rejected the operation"
    TYPE_MISMATCH = "item kind does not match the wrapper kind"
    NOT_A_CONTAINER = "item is not an array or map"
    LENGTH_UNKNOWN = "item is not a container of declared length"


class CborStreamError(Exception):
    """Base class for failures of the streaming layer.

    ``kind`` is an :class:`ErrorKind`, or None for usage errors.
    ``code`` is the :class:`~pycborstream.codec.CodecErrorCode` reported
    by the codec when it was the codec that refused, else None."""

    def __init__(self, kind, message=None, code=None):
        self.kind = kind
        self.code = code
        if message is None:
            message = kind.value if kind is not None else ""
        super().__init__(message)


class EncodeError(CborStreamError):
    pass


class DecodeError(CborStreamError):
    pass


class UsageError(CborStreamError, RuntimeError):
    """Raised when a context is used out of turn: through a parent whose
    nested container is still open, after it was finalized, or when a
    result is read while containers are open."""

    def __init__(self, message):
        super().__init__(None, message)
