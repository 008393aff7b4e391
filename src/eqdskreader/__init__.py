"""
eqdskreader: read G-EQDSK tokamak equilibrium files.
"""

__version__ = "0.1.0"

from .errors import FormatError
from .core.content import Content
from .io.eqdsk import read_eqdsk
from .io.tokenizer import (
    get_tokenizer,
    register_tokenizer,
    list_tokenizers,
)

__all__ = [
    "Content",
    "FormatError",
    "read_eqdsk",
    "get_tokenizer",
    "register_tokenizer",
    "list_tokenizers",
]
