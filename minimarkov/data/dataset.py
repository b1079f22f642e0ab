"""Loading and tokenizing training titles."""

import logging
import re
from pathlib import Path
from typing import List, Union

from minimarkov.models.chain import RESERVED_TOKENS


logger = logging.getLogger(__name__)

TOKEN_BOUNDARY = re.compile(r'\s+')


def split_title(text: str) -> List[str]:
    """Split a title on runs of whitespace, dropping sentinel tokens."""
    text = text.strip()
    if not text:
        return []
    return [t for t in TOKEN_BOUNDARY.split(text) if t not in RESERVED_TOKENS]


def read_titles(path: Union[str, Path]) -> List[str]:
    """Read one title per non-empty line."""
    with open(path, 'r', encoding='utf-8') as f:
        return [l.strip() for l in f if l.strip()]


class PageDirectorySource:
    """Document source backed by a directory of saved board pages.

    Page ``i`` is the file ``page-<i>.txt`` holding one post title per line.
    Calling the source with a page number returns that page's titles as
    token lists; a missing page raises ``FileNotFoundError``.
    """

    def __init__(self, root: Union[str, Path], pattern: str = 'page-{}.txt'):
        """
        Args:
            root: Directory containing the page files
            pattern: File name template, formatted with the page number
        """
        self.root = Path(root)
        self.pattern = pattern

    def path_for(self, page: int) -> Path:
        return self.root / self.pattern.format(page)

    def __call__(self, page: int) -> List[List[str]]:
        path = self.path_for(page)
        titles = read_titles(path)
        logger.debug(f"Read {len(titles)} titles from {path}")
        return [split_title(title) for title in titles]
