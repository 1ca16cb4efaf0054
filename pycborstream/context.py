"""Nested context lifecycle shared by the encode and decode directions.

Every context is either the root of an operation or nested inside the
container its parent opened (encode) or entered (decode)::

    Root --begin/enter--> Nested(Root)
    Nested(p) --begin/enter--> Nested(Nested(p))
    Nested(p) --end/leave--> p

Only the innermost open context of a chain may be used. A nested
context is finalized exactly once, by ``end()``/``leave()``, by leaving
a ``with`` block, or by a failing operation anywhere in its chain.
"""

import logging
from enum import Enum

from .codec import CodecError
from .errors import ErrorKind, UsageError
from .records import basic_records


log = logging.getLogger(__name__)


class ContextState(Enum):
    ROOT = "root"
    NESTED = "nested"


class Context:
    """Base class for :class:`~pycborstream.encoder.EncodeContext` and
    :class:`~pycborstream.decoder.DecodeContext`.

    Subclasses provide ``error_class`` and the two container hooks:
    ``_close_container()``, which may raise CodecError, and
    ``_abandon_container()``, which must not fail."""

    error_class = None

    def __init__(self, parent=None, records=None):
        self.parent = parent
        self.child = None
        self.finalized = False
        self.error = None
        if parent is None:
            self.state = ContextState.ROOT
            self.root = self
            self.records = basic_records if records is None else tuple(records)
        else:
            self.state = ContextState.NESTED
            self.root = parent.root
            self.records = parent.records

    @property
    def nested(self):
        return self.state is ContextState.NESTED

    @property
    def depth(self):
        depth = 0
        ctx = self
        while ctx.parent is not None:
            depth += 1
            ctx = ctx.parent
        return depth

    def _check_active(self):
        if self.finalized:
            raise UsageError("The context has already been finalized.")
        if self.child is not None:
            raise UsageError(
                "A nested container is still open; finalize it before "
                "using its parent.")

    def _nest(self, child):
        self.child = child
        return child

    def _detach(self):
        self.finalized = True
        if self.parent.child is self:
            self.parent.child = None

    def _finalize(self):
        """Close or leave this context's container and return the
        parent. A no-op on the root and on a finalized context."""
        if self.state is ContextState.ROOT:
            return self
        if self.finalized:
            return self.parent
        if self.child is not None:
            raise UsageError(
                "Cannot finalize a context whose nested container is "
                "still open.")
        try:
            self._close_container()
        except CodecError as e:
            raise self._failure(ErrorKind.CODEC_REJECTED, cause=e) from e
        self._detach()
        return self.parent

    def _innermost(self):
        ctx = self
        while ctx.child is not None:
            ctx = ctx.child
        return ctx

    def _abandon_upto(self, last):
        """Force-finalize every open context from the innermost
        descendant of *self* up to and including *last*."""
        count = 0
        ctx = self._innermost()
        while ctx.state is ContextState.NESTED:
            if not ctx.finalized:
                ctx._abandon_container()
                ctx._detach()
                count += 1
            if ctx is last:
                break
            ctx = ctx.parent
        return count

    def _release(self):
        """Finalize this context and everything nested in it without
        checks. Used on scope exit and by the buffer owners."""
        count = self._abandon_upto(self)
        if count:
            log.warning("force-finalized %d open container(s)", count)

    def _failure(self, kind, cause=None, message=None):
        """Abandon the whole open chain, record the error on the root
        and return it for the caller to raise."""
        if message is None and cause is not None:
            message = str(cause)
        code = getattr(cause, "code", None)
        return self._abort(self.error_class(kind, message, code))

    def _abort(self, error):
        """Like :meth:`_failure` for an exception that is already built,
        such as a TypeError or an error raised by a record routine."""
        count = self._abandon_upto(self.root)
        if count:
            log.warning("abandoned %d open container(s) after failure: %r",
                        count, error)
        self.root.error = error
        return error

    def _run_record(self, routine, obj):
        """Call a record's encode or decode *routine* on this context
        and return the context it finished on. Whatever the routine
        raises, the containers it left open are abandoned first."""
        try:
            ctx = routine(obj, self)
        except BaseException as e:
            self._abort(e)
            raise
        return self if ctx is None else ctx

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            self._release()
            return False
        if self.child is not None:
            self._release()
            raise UsageError("Nested container left open at end of scope.")
        self._finalize()
        return False
