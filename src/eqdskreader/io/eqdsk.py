"""
G-EQDSK reader.

This module reads the equilibrium files written in the so-called G-EQDSK
layout (see the G_EQDSK document from General Atomics) in a single forward
pass and builds a :class:`~eqdskreader.core.content.Content` record.

Layout, line by line::

    case (6a8), idum, nw, nh                       (6a8, 3i4)
    rdim, zdim, rcentr, rleft, zmid                (5e16.9)
    rmaxis, zmaxis, simag, sibry, bcentr
    current, simag, xdum, rmaxis, xdum
    zmaxis, xdum, sibry, xdum, xdum
    fpol(nw), pres(nw), ffprim(nw), pprime(nw)
    psirz(nw, nh)                                  R index varies fastest
    qpsi(nw)
    nbbbs, limitr                                  (2i5)
    (rbbbs(i), zbbbs(i), i=1, nbbbs)
    (rlim(i), zlim(i), i=1, limitr)

Every block starts on a new line. The repeated scalars of lines 4 and 5 are
read positionally and kept apart from the primary values of line 3.
"""

import contextlib
import logging
import os
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from ..errors import FormatError
from .tokenizer import (FixedWidthTokenizer, Tokenizer, WhitespaceTokenizer,
                        get_tokenizer, parse_float, parse_int)

fmt = logging.Formatter('%(asctime)s | %(name)s | %(levelname)s: %(message)s', '%H:%M:%S')


logger = logging.getLogger('eqdsk')

if len(logger.handlers) == 0:
    hnd = logging.StreamHandler()
    hnd.setFormatter(fmt)
    logger.addHandler(hnd)

_level = os.environ.get('EQDSKREADER_LOG_LEVEL', 'INFO').strip().upper()
if isinstance(logging.getLevelName(_level), int):
    logger.setLevel(_level)
else:
    logger.setLevel(logging.INFO)
    logger.warning(f'Unknown log level {_level!r} in EQDSKREADER_LOG_LEVEL. ' +
                   'Using INFO.')

logger = logging.getLogger('eqdsk.reader')

CASE_WIDTH = 48
HEADER_INT_WIDTH = 4
COUNT_INT_WIDTH = 5

_HEADER_3INT = re.compile(r'^(?:(.*?)\s+)?([+-]?\d+)\s+([+-]?\d+)\s+([+-]?\d+)\s*$')
_HEADER_2INT = re.compile(r'^(?:(.*?)\s+)?([+-]?\d+)\s+([+-]?\d+)\s*$')
_INT_FIELD = re.compile(r'\s*[+-]?\d+\s*')

PROFILES = ('fpol', 'pres', 'ffprim', 'pprime')
SourceLike = Union[str, 'os.PathLike[str]', Any]


# -----------------------------------------------------------------------------
# LINE CURSOR.
# -----------------------------------------------------------------------------
class _LineCursor:
    """
    Forward-only reader over the lines of an EQDSK stream.

    :param lines: iterable of ``str`` or ``bytes`` lines, or an object with a
        ``readline`` method.
    :param tokenizer: strategy splitting the numeric lines.
    """

    def __init__(self, lines, tokenizer: Tokenizer) -> None:
        if not hasattr(lines, '__iter__') and hasattr(lines, 'readline'):
            lines = _readlines(lines)
        self._lines = iter(lines)
        self.tokenizer = tokenizer
        self.lineno = 0

    def _next_raw(self) -> Optional[str]:
        try:
            raw = next(self._lines)
        except StopIteration:
            return None
        except UnicodeDecodeError as exc:
            raise FormatError('Stream is not ASCII/UTF-8 text',
                              lineno=self.lineno + 1) from exc
        self.lineno += 1

        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError as exc:
                raise FormatError('Stream is not ASCII/UTF-8 text',
                                  lineno=self.lineno) from exc
        return raw.rstrip('\r\n')

    def _next_nonblank(self) -> Optional[str]:
        """
        Next non-blank line, or None at end of stream.
        """
        while True:
            line = self._next_raw()
            if line is None or line.strip():
                return line

    def next_line(self, field: str, expected: Any = 'a line') -> str:
        """
        Next non-blank line, raising ``FormatError`` at end of stream.
        """
        line = self._next_nonblank()
        if line is None:
            raise FormatError('Unexpected end of stream',
                              lineno=self.lineno, field=field,
                              expected=expected, found='end of stream')
        return line

    def read_floats(self, count: int, field: str) -> np.ndarray:
        """
        Read a block of ``count`` floats, starting on a new line.
        """
        values: List[float] = []
        while len(values) < count:
            line = self._next_nonblank()
            if line is None:
                raise FormatError('Unexpected end of stream', lineno=self.lineno,
                                  field=field, expected=f'{count} values',
                                  found=f'{len(values)} values')
            tokens = self.tokenizer.split(line, self.lineno)
            values.extend(parse_float(tok, self.lineno, field) for tok in tokens)

        if len(values) > count:
            raise FormatError('Block holds more values than declared',
                              lineno=self.lineno, field=field,
                              expected=f'{count} values',
                              found=f'{len(values)} values')
        return np.asarray(values, dtype=np.float64)

    def read_ints(self, count: int, field: str,
                  width: int = COUNT_INT_WIDTH) -> List[int]:
        """
        Read one line holding ``count`` integers.

        Blank separated integers are tried first; glued fields are then read
        with a fixed ``width``.
        """
        line = self.next_line(field, expected=f'{count} integers')
        words = line.split()
        if len(words) == count and all(_INT_FIELD.fullmatch(w) for w in words):
            return [parse_int(w, self.lineno, field) for w in words]

        data = line.rstrip()
        chunks = [data[i:i + width] for i in range(0, len(data), width)]
        if len(chunks) == count and all(_INT_FIELD.fullmatch(c) for c in chunks):
            return [parse_int(c, self.lineno, field) for c in chunks]

        raise FormatError('Cannot read integer line', lineno=self.lineno,
                          field=field, expected=f'{count} integers',
                          found=line.strip())

    def drain(self) -> int:
        """
        Consume the rest of the stream, returning the number of non-blank lines.
        """
        extra = 0
        while self._next_nonblank() is not None:
            extra += 1
        return extra


def _readlines(stream) -> Iterator[Any]:
    """
    Lines of a stream that only provides ``readline``.
    """
    while True:
        line = stream.readline()
        if not line:
            return
        yield line


# -----------------------------------------------------------------------------
# HEADER.
# -----------------------------------------------------------------------------
def _header_fixed(line: str) -> Optional[Tuple[str, Optional[int], int, int]]:
    """
    Header in the 6a8,3i4 layout, or None if the line does not follow it.
    """
    tail = line[CASE_WIDTH:].rstrip()
    chunks = [tail[i:i + HEADER_INT_WIDTH]
              for i in range(0, len(tail), HEADER_INT_WIDTH)]
    if len(chunks) != 3 or not all(_INT_FIELD.fullmatch(c) for c in chunks):
        return None
    idum, nw, nh = (int(c) for c in chunks)
    return line[:CASE_WIDTH].strip(), idum, nw, nh


def _header_tolerant(line: str) -> Optional[Tuple[str, Optional[int], int, int]]:
    """
    Header as free text followed by blank separated ``[idum] nw nh``.
    """
    match = _HEADER_3INT.match(line)
    if match is not None:
        case, idum, nw, nh = match.groups()
        return (case or '').strip(), int(idum), int(nw), int(nh)

    match = _HEADER_2INT.match(line)
    if match is not None:
        case, nw, nh = match.groups()
        return (case or '').strip(), None, int(nw), int(nh)
    return None


def _read_header(cursor: _LineCursor) -> Tuple[str, Optional[int], int, int]:
    line = cursor.next_line('header', expected='case string and grid sizes')

    parsed = None
    if not isinstance(cursor.tokenizer, WhitespaceTokenizer):
        parsed = _header_fixed(line)
    if parsed is None and not isinstance(cursor.tokenizer, FixedWidthTokenizer):
        parsed = _header_tolerant(line)
        if parsed is not None:
            logger.debug('Header read as blank separated tokens')
    if parsed is None:
        raise FormatError('Cannot read header line', lineno=cursor.lineno,
                          field='header', expected='case string, [idum], nw, nh',
                          found=line)

    case, idum, nw, nh = parsed
    if nw <= 0 or nh <= 0:
        raise FormatError('Grid dimensions must be positive',
                          lineno=cursor.lineno, field='nw, nh',
                          expected='nw > 0 and nh > 0', found=(nw, nh))
    return case, idum, nw, nh


# -----------------------------------------------------------------------------
# ROUTINES TO READ THE EQDSK.
# -----------------------------------------------------------------------------
@contextlib.contextmanager
def _open_source(source: SourceLike) -> Iterator[Any]:
    """
    Yield a line iterable, opening paths read-only and leaving streams open.
    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, 'r', encoding='utf-8') as f:
            yield f
    else:
        yield source


def read_fields(source: SourceLike,
                tokenizer: Union[str, Tokenizer, None] = None) -> Dict[str, Any]:
    """
    Read an EQDSK stream and return the raw fields of the record.

    Parameters
    ----------
    source : path or stream
        File path, or an open text or binary stream.
    tokenizer : str or Tokenizer, optional
        Strategy splitting the numeric lines. Default is taken from
        ``$EQDSKREADER_TOKENIZER`` (``auto`` when unset).

    Returns
    -------
    dict
        Keyword arguments of :class:`~eqdskreader.core.content.Content`.

    Raises
    ------
    FormatError
        If the stream does not follow the G-EQDSK layout.
    OSError
        If the file cannot be opened or read.
    """
    tokenizer = get_tokenizer(tokenizer)

    with _open_source(source) as lines:
        cursor = _LineCursor(lines, tokenizer)
        case, idum, nw, nh = _read_header(cursor)

        rdim, zdim, rcentr, rleft, zmid      = cursor.read_floats(5, 'rdim')
        rmaxis, zmaxis, simag, sibry, bcentr = cursor.read_floats(5, 'rmaxis')
        current, simag2, _, rmaxis2, _       = cursor.read_floats(5, 'current')
        zmaxis2, _, sibry2, _, _             = cursor.read_floats(5, 'zmaxis')

        output: Dict[str, Any] = {}
        for lbl in PROFILES:
            output[lbl] = cursor.read_floats(nw, lbl)

        # R varies fastest in the file: psirz[i_R, j_Z].
        flat = cursor.read_floats(nw * nh, 'psirz')
        psirz = np.ascontiguousarray(flat.reshape(nh, nw).T)

        qpsi = cursor.read_floats(nw, 'qpsi')

        nbbbs, limitr = cursor.read_ints(2, 'nbbbs, limitr')
        if nbbbs < 0 or limitr < 0:
            raise FormatError('Contour sizes must not be negative',
                              lineno=cursor.lineno, field='nbbbs, limitr',
                              expected='non-negative counts',
                              found=(nbbbs, limitr))

        bdy = cursor.read_floats(2 * nbbbs, 'rbbbs, zbbbs').reshape(nbbbs, 2)
        lim = cursor.read_floats(2 * limitr, 'rlim, zlim').reshape(limitr, 2)

        extra = cursor.drain()
        if extra:
            logger.debug('Ignoring %d trailing lines after the limiter block',
                         extra)

    duplicates = {'simag': float(simag2), 'rmaxis': float(rmaxis2),
                  'zmaxis': float(zmaxis2), 'sibry': float(sibry2)}
    primary = {'simag': simag, 'rmaxis': rmaxis, 'zmaxis': zmaxis,
               'sibry': sibry}
    for key, value in duplicates.items():
        if value != primary[key]:
            logger.warning(f'Repeated {key} slot ({value}) differs from the ' +
                           f'primary value ({primary[key]}). Keeping the primary.')

    output.update(case_id=case, idum=idum, nw=nw, nh=nh,
                  rdim=float(rdim), zdim=float(zdim), rcentr=float(rcentr),
                  rleft=float(rleft), zmid=float(zmid),
                  rmaxis=float(rmaxis), zmaxis=float(zmaxis),
                  simag=float(simag), sibry=float(sibry),
                  bcentr=float(bcentr), current=float(current),
                  psirz=psirz, qpsi=qpsi,
                  nbbbs=nbbbs, limitr=limitr,
                  rbbbs=bdy[:, 0], zbbbs=bdy[:, 1],
                  rlim=lim[:, 0], zlim=lim[:, 1],
                  duplicates=duplicates)
    return output


def read_eqdsk(stream: SourceLike,
               tokenizer: Union[str, Tokenizer, None] = None):
    """
    Read a stream according to the G_EQDSK layout.

    Parameters
    ----------
    stream : stream or path
        Open text or binary stream. A file path is also accepted.
    tokenizer : str or Tokenizer, optional
        Strategy splitting the numeric lines (``auto``, ``fixed``,
        ``whitespace`` or a registered name).

    Returns
    -------
    Content
        Fully populated, immutable record.

    Raises
    ------
    FormatError
        If the stream does not follow the G-EQDSK layout.
    OSError
        If the underlying resource cannot be read.

    Examples
    --------
    >>> with open('g012345.01000') as f:
    ...     eq = read_eqdsk(f)
    >>> eq.psirz.shape == (eq.nw, eq.nh)
    True
    """
    from ..core.content import Content

    return Content.from_fields(**read_fields(stream, tokenizer=tokenizer))
