"""
Exceptions raised while reading EQDSK files.
"""

from typing import Any, Optional


class FormatError(ValueError):
    """
    The content of an EQDSK stream does not follow the expected layout.

    Parameters
    ----------
    message : str
        Human readable description of the problem.
    lineno : int, optional
        1-based line number where the problem was found.
    field : str, optional
        Name of the EQDSK quantity being read.
    expected : Any, optional
        What the reader was expecting (a count or a token shape).
    found : Any, optional
        What was actually found.
    """

    def __init__(
        self,
        message: str,
        lineno: Optional[int] = None,
        field: Optional[str] = None,
        expected: Any = None,
        found: Any = None
    ) -> None:
        self.lineno = lineno
        self.field = field
        self.expected = expected
        self.found = found

        details = []
        if lineno is not None:
            details.append(f'line {lineno}')
        if field is not None:
            details.append(f'field {field!r}')
        if expected is not None:
            details.append(f'expected {expected}')
        if found is not None:
            details.append(f'found {found!r}')

        if details:
            message = f'{message} ({", ".join(details)})'
        super().__init__(message)
