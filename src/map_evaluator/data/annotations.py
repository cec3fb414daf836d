"""Ground-truth annotation catalog.

Annotation files hold one record per line::

    <ignored id>;<class id>;<is query 0|1>;<class count>[;ignored columns...]

The item id is the 0-based line number; the first column is never read.
"""

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple, Union

import numpy as np

from map_evaluator.errors import LoadError, ParseError
from map_evaluator.logging_config import get_logger

logger = get_logger(__name__)

DELIMITER = ";"
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)


@dataclass(frozen=True)
class CatalogItem:
    """One annotated catalog entry.

    Attributes:
        id: 0-based position in the annotation file
        class_id: Ground-truth class
        is_query: Whether the item is used as a query
        class_count: Number of items relevant to this item's class,
            including the item itself (trusted, never recomputed)
    """

    id: int
    class_id: int
    is_query: bool
    class_count: int


class Catalog:
    """Ordered, read-only sequence of catalog items indexed by id."""

    def __init__(self, items: Sequence[CatalogItem]) -> None:
        items = tuple(items)
        for position, item in enumerate(items):
            if item.id != position:
                raise ValueError(
                    f"Catalog item at position {position} has id {item.id}"
                )

        self._items: Tuple[CatalogItem, ...] = items
        self._queries: Tuple[CatalogItem, ...] = tuple(i for i in items if i.is_query)

        class_ids = np.array([item.class_id for item in items], dtype=np.int64)
        class_ids.setflags(write=False)
        self._class_ids = class_ids

    @property
    def items(self) -> Tuple[CatalogItem, ...]:
        return self._items

    @property
    def queries(self) -> Tuple[CatalogItem, ...]:
        """Query subset in file order."""
        return self._queries

    @property
    def class_ids(self) -> np.ndarray:
        """Read-only array of class ids indexed by item id."""
        return self._class_ids

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item_id: int) -> CatalogItem:
        return self._items[item_id]

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items)


def _parse_int(token: str, column: str, line_number: int) -> int:
    token = token.strip()
    if not INTEGER_PATTERN.fullmatch(token):
        raise ParseError(
            f"Error parsing column \"{column}\": {token!r} is not an integer",
            line_number,
        )
    return int(token)


def parse_line(line: str, item_id: int) -> CatalogItem:
    """Parse one annotation record into the catalog item with id ``item_id``.

    Raises:
        ParseError: Missing or malformed class_id, is_query or class_count
    """
    line_number = item_id + 1
    columns = line.rstrip("\r\n").split(DELIMITER)

    names = ("class_id", "is_query", "class_count")
    if len(columns) < 1 + len(names):
        missing = names[max(len(columns) - 1, 0)]
        raise ParseError(f"Missing column \"{missing}\"", line_number)

    class_id, is_query, class_count = (
        _parse_int(token, name, line_number)
        for token, name in zip(columns[1:4], names)
    )

    if is_query not in (0, 1):
        raise ParseError(
            f"Invalid value in column \"is_query\": 0 or 1 expected but "
            f"{is_query} received",
            line_number,
        )

    return CatalogItem(
        id=item_id,
        class_id=class_id,
        is_query=bool(is_query),
        class_count=class_count,
    )


def parse_annotations(path: Union[str, Path]) -> Catalog:
    """Parse an annotation file into a Catalog.

    Args:
        path: Path to the UTF-8 annotation file

    Returns:
        Catalog in file order

    Raises:
        LoadError: File missing or unreadable
        ParseError: Malformed record, reported with its 1-based line number
    """
    path = Path(path)
    logger.info(f"Loading annotation file: {path}")
    start_time = time.time()

    try:
        # Records end at "\n" only; free-text columns may hold other line breaks
        with open(path, "r", encoding="utf-8", newline="\n") as f:
            items: List[CatalogItem] = [
                parse_line(line, item_id) for item_id, line in enumerate(f)
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Error opening annotation file {path}: {e}") from e

    catalog = Catalog(items)

    logger.info(f"Annotation file loaded in {time.time() - start_time:.3f} seconds")
    logger.info(f"  Items: {len(catalog)}")
    logger.info(f"  Queries: {len(catalog.queries)}")

    return catalog
