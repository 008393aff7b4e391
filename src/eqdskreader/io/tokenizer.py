"""
Tokenizing strategies for the numeric blocks of EQDSK files.

The G-EQDSK convention writes floats with the Fortran edit descriptor
``5e16.9``: five fields of 16 characters per line. Producers do not always
honour the exact widths, so the reader delegates the splitting of each line to
a pluggable strategy:

- ``fixed``: slice the line into fields of a fixed width.
- ``whitespace``: split on blanks, also separating literals written back to
  back such as ``1.0E+00-2.0E+00``.
- ``auto``: whitespace splitting when every token is a single literal, fixed
  width when the line is made of glued fields, whitespace splitting otherwise.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Union

from ..errors import FormatError

logger = logging.getLogger('eqdsk.tokenizer')

# Fortran writes double precision exponents with D (1.0D+01).
_LITERAL = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[EeDd][+-]?\d+)?')
_GLUED_SIGN = re.compile(r'(?<=[\d.])([+-])')

DEFAULT_FIELD_WIDTH = 16


def is_literal(token: str) -> bool:
    """Whether ``token`` is exactly one numeric literal."""
    return _LITERAL.fullmatch(token) is not None


def parse_float(token: str, lineno: Optional[int] = None,
                field: Optional[str] = None) -> float:
    """
    Convert a numeric token to float, accepting Fortran ``D`` exponents.

    :param token: text of the literal.
    :param lineno: line number, for error reporting.
    :param field: quantity being read, for error reporting.
    """
    if not is_literal(token):
        raise FormatError('Invalid numeric literal', lineno=lineno,
                          field=field, expected='a float', found=token)
    return float(token.replace('D', 'E').replace('d', 'e'))


def parse_int(token: str, lineno: Optional[int] = None,
              field: Optional[str] = None) -> int:
    """Convert an integer token, raising ``FormatError`` on failure."""
    try:
        return int(token)
    except ValueError:
        raise FormatError('Invalid integer literal', lineno=lineno,
                          field=field, expected='an integer',
                          found=token) from None


class Tokenizer(ABC):
    """
    Strategy splitting one line of a numeric block into literal tokens.
    """

    name: str = ''

    @abstractmethod
    def split(self, line: str, lineno: Optional[int] = None) -> List[str]:
        """
        Split ``line`` into numeric tokens.

        :param line: line content, without the trailing newline.
        :param lineno: line number, for error reporting.
        """

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


class FixedWidthTokenizer(Tokenizer):
    """
    Slice lines into fields of ``width`` characters.

    Parameters
    ----------
    width : int, optional
        Field width. Default is 16, the ``e16.9`` convention.
    """

    name = 'fixed'

    def __init__(self, width: int = DEFAULT_FIELD_WIDTH) -> None:
        if width <= 0:
            raise ValueError(f'Field width must be positive, got {width}')
        self.width = width

    def split(self, line: str, lineno: Optional[int] = None) -> List[str]:
        data = line.rstrip()
        tokens = []
        for start in range(0, len(data), self.width):
            chunk = data[start:start + self.width].strip()
            if not chunk:
                raise FormatError('Blank fixed-width field', lineno=lineno,
                                  expected=f'{self.width}-character field',
                                  found=data[start:start + self.width])
            tokens.append(chunk)
        return tokens

    def __repr__(self) -> str:
        return f'{type(self).__name__}(width={self.width})'


class WhitespaceTokenizer(Tokenizer):
    """
    Split on whitespace, separating literals glued through their sign.
    """

    name = 'whitespace'

    def split(self, line: str, lineno: Optional[int] = None) -> List[str]:
        tokens = []
        for word in line.split():
            if is_literal(word):
                tokens.append(word)
                continue
            pieces = _GLUED_SIGN.sub(r' \1', word).split()
            for piece in pieces:
                if not is_literal(piece):
                    raise FormatError('Cannot split numeric field',
                                      lineno=lineno, expected='a float',
                                      found=word)
            tokens.extend(pieces)
        return tokens


class AutoTokenizer(Tokenizer):
    """
    Pick between whitespace and fixed-width splitting on each line.

    Parameters
    ----------
    width : int, optional
        Field width used when the line holds glued fixed-width fields.
    """

    name = 'auto'

    def __init__(self, width: int = DEFAULT_FIELD_WIDTH) -> None:
        self._fixed = FixedWidthTokenizer(width)
        self._blank = WhitespaceTokenizer()

    @property
    def width(self) -> int:
        return self._fixed.width

    def split(self, line: str, lineno: Optional[int] = None) -> List[str]:
        tokens = line.split()
        if all(is_literal(tok) for tok in tokens):
            return tokens

        try:
            tokens = self._fixed.split(line, lineno)
        except FormatError:
            tokens = []
        if tokens and all(is_literal(tok) for tok in tokens):
            logger.debug('Line %s read with fixed-width fields', lineno)
            return tokens

        logger.debug('Line %s read splitting glued literals', lineno)
        return self._blank.split(line, lineno)

    def __repr__(self) -> str:
        return f'{type(self).__name__}(width={self.width})'


# -----------------------------------------------------------------------------
# REGISTRY OF TOKENIZING STRATEGIES.
# -----------------------------------------------------------------------------
TOKENIZER_REGISTRY: Dict[str, Callable[[], Tokenizer]] = {
    'auto': AutoTokenizer,
    'fixed': FixedWidthTokenizer,
    'whitespace': WhitespaceTokenizer,
}


def default_tokenizer_name() -> str:
    """Tokenizer used when none is given, ``$EQDSKREADER_TOKENIZER`` or auto."""
    return os.environ.get('EQDSKREADER_TOKENIZER', 'auto').strip().lower()


def get_tokenizer(spec: Union[str, Tokenizer, None] = None) -> Tokenizer:
    """
    Resolve a tokenizer from a registered name or an instance.

    :param spec: registered name, ``Tokenizer`` instance or None for the
        process default.
    """
    if isinstance(spec, Tokenizer):
        return spec
    if spec is None:
        spec = default_tokenizer_name()
    if not isinstance(spec, str):
        raise TypeError(f'Expected a tokenizer name or instance, got {spec!r}')

    name = spec.lower()
    if name not in TOKENIZER_REGISTRY:
        available = ', '.join(TOKENIZER_REGISTRY.keys())
        raise ValueError(f"Unknown tokenizer '{spec}'. "
                         f"Available tokenizers: {available}")

    tokenizer = TOKENIZER_REGISTRY[name]()
    if not isinstance(tokenizer, Tokenizer):
        raise TypeError(f"Tokenizer factory '{name}' returned {tokenizer!r}")
    return tokenizer


def register_tokenizer(name: str, factory: Callable[[], Tokenizer]) -> None:
    """
    Register a tokenizer factory under ``name``.

    The factory is called with no arguments each time the name is resolved,
    so a ``Tokenizer`` subclass can be registered directly.
    """
    if not callable(factory):
        raise TypeError('Tokenizer factory must be callable')
    TOKENIZER_REGISTRY[name.lower()] = factory


def list_tokenizers() -> list:
    """
    List all registered tokenizer names.
    """
    return list(TOKENIZER_REGISTRY.keys())
