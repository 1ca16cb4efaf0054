"""
=============
CBOR Streams
=============

Typed, composable encoding and decoding of CBOR records (RFC 8949).

A record is written as a flat chain of calls against an encode context
and read back by the matching chain against a decode context. Opening a
container yields a nested context; finishing it yields the parent back.

Kinds
-----

Every scalar is pinned to one kind by its wrapper:

========= ================== =========================
Kind      Encode wrapper     CBOR item
========= ================== =========================
uint      ``uint(v)``        major type 0
int       ``sint(v)``        major type 0 or 1
text      ``text(v)``        major type 3 (UTF-8)
bytes     ``bytestring(v)``  major type 2
bool      ``boolean(v)``     simple values 20, 21
float     ``float32(v)``     single precision float
double    ``float64(v)``     double precision float
null      ``NULL``           simple value 22
undefined ``UNDEFINED``      simple value 23
========= ================== =========================

On the decode side, ``Slot(kind, target, name)`` receives the value and
writes it through to ``target``.

Containers
----------

==================== ======================= ==========================
Operation            Encode                  Decode
==================== ======================= ==========================
open / enter         ``begin_array(n)``,     ``enter()``
                     ``begin_map(n)``
close / leave        ``end()``               ``leave()``
step over an item                            ``skip()``
==================== ======================= ==========================

``n=None`` writes an indefinite-length container. ``end()`` and
``leave()`` are no-ops on the root context, and on a context that is
already finalized. Contexts are context managers: a ``with`` block
finalizes its context on exit, and a failing operation finalizes every
container still open in its chain before the error is raised.

Example
-------

::

    encoder = EncoderBuffer()
    (encoder.begin_map(2)
        .append("name").append(text("Hello"))
        .append("value").append(uint(10))
     .end())

    inner = {}
    decoder = DecoderBuffer(encoder.getvalue())
    (decoder.enter()
        .skip().extract(Slot(Kind.TEXT, inner, "name"))
        .skip().extract(Slot(Kind.UINT, inner, "value"))
     .leave())
"""

import logging

from .api import dump, dumps, load, loads
from .codec import CodecError, CodecErrorCode
from .context import ContextState
from .decoder import DecodeContext, DecoderBuffer
from .encoder import DEFAULT_BUFFER_SIZE, EncodeContext, EncoderBuffer
from .errors import CborStreamError, DecodeError, EncodeError, ErrorKind, UsageError
from .records import RecordType, basic_records
from .values import (
    Kind, NULL, Slot, UNDEFINED, Value, boolean, bytestring, float32,
    float64, sint, text, uint)
from .version import __version__


logging.getLogger(__name__).addHandler(logging.NullHandler())
