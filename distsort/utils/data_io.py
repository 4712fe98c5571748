"""
Reading and writing integer data files.

Input files hold integers separated by any whitespace; result files hold one
integer per line.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_integers(path: PathLike) -> List[int]:
    """
    Read every whitespace-separated integer from a text file.

    Raises:
        ValueError: if a token is not an integer
    """
    values = []
    with open(path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            for token in line.split():
                try:
                    values.append(int(token))
                except ValueError:
                    raise ValueError(f"{path}:{line_number}: not an integer: {token!r}") from None

    logger.info(f"Read {len(values)} values from {path}")
    return values


def write_integers(path: PathLike, values: Iterable[int]) -> Path:
    """
    Write values one per line.

    Returns:
        Absolute path of the written file
    """
    path = Path(path)
    with open(path, 'w') as f:
        for value in values:
            f.write(f"{value}\n")

    logger.info(f"Result written to: {path.resolve()}")
    return path.resolve()
