"""
I/O modules for eqdskreader.
"""

from . import tokenizer
from . import eqdsk
from . import cocos
from .eqdsk import read_eqdsk, read_fields
from .tokenizer import (
    Tokenizer,
    AutoTokenizer,
    FixedWidthTokenizer,
    WhitespaceTokenizer,
    get_tokenizer,
    register_tokenizer,
    list_tokenizers,
)
from .cocos import (
    COCOS,
    assign,
    transform_cocos,
    convert,
)

__all__ = [
    "tokenizer",
    "eqdsk",
    "cocos",
    "read_eqdsk",
    "read_fields",
    "Tokenizer",
    "AutoTokenizer",
    "FixedWidthTokenizer",
    "WhitespaceTokenizer",
    "get_tokenizer",
    "register_tokenizer",
    "list_tokenizers",
    "COCOS",
    "assign",
    "transform_cocos",
    "convert",
]
