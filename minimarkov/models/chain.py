"""Fixed-order Markov chain over whitespace tokens."""

import json
import logging
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import torch


logger = logging.getLogger(__name__)

START_TOKEN = '<s>'
END_TOKEN = '</s>'
RESERVED_TOKENS = frozenset((START_TOKEN, END_TOKEN))

Context = Tuple[str, ...]


class MarkovError(Exception):
    """Base class for chain errors."""


class ModelDecodeError(MarkovError):
    """Persisted chain bytes could not be decoded."""


class UnknownContextError(MarkovError, KeyError):
    """Generate was asked for a context never seen in training."""

    def __init__(self, context: Sequence[str]):
        super().__init__(tuple(context))
        self.context = tuple(context)

    def __str__(self) -> str:
        return f"unknown context: {list(self.context)!r}"


class ChainModel:
    """An n-gram frequency model with weighted sampling.

    Every context key is a tuple of exactly ``order`` tokens. The first
    contexts of a document are padded with ``START_TOKEN`` and each document
    ends with a transition to ``END_TOKEN``.
    """

    def __init__(
        self,
        order: int,
        generator: Optional[torch.Generator] = None
    ):
        """
        Args:
            order: Number of preceding tokens used as context
            generator: Optional random source for sampling (seed it in tests)
        """
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            raise ValueError(f"order must be a positive integer, got {order!r}")
        self._order = order
        self.generator = generator
        self._freq: Dict[Context, Counter] = {}
        self._lock = threading.Lock()

    @property
    def order(self) -> int:
        return self._order

    def __len__(self) -> int:
        return len(self._freq)

    def __contains__(self, context) -> bool:
        return tuple(context) in self._freq

    def __eq__(self, other) -> bool:
        if not isinstance(other, ChainModel):
            return NotImplemented
        return self.order == other.order and self.to_dict() == other.to_dict()

    # mutable, compared by contents
    __hash__ = None

    def __repr__(self) -> str:
        return f"ChainModel(order={self.order}, contexts={len(self)})"

    def add(self, document: Optional[Iterable[str]]) -> None:
        """Record every transition of one document.

        Raises ``ValueError`` if the document contains a sentinel token.
        """
        tokens = [START_TOKEN] * self._order
        if document:
            tokens.extend(document)
        reserved = RESERVED_TOKENS.intersection(tokens[self._order:])
        if reserved:
            raise ValueError(f"document contains reserved tokens {sorted(reserved)!r}")
        tokens.append(END_TOKEN)

        with self._lock:
            for i in range(len(tokens) - self._order):
                context = tuple(tokens[i:i + self._order])
                table = self._freq.get(context)
                if table is None:
                    table = self._freq[context] = Counter()
                table[tokens[i + self._order]] += 1

    def merge(self, other: 'ChainModel') -> None:
        """Add all counts of another chain of the same order."""
        if other.order != self._order:
            raise ValueError(
                f"cannot merge chain of order {other.order} into order {self._order}"
            )
        snapshot = other.to_dict()
        with self._lock:
            for context, table in snapshot.items():
                self._freq.setdefault(context, Counter()).update(table)

    def contexts(self) -> List[Context]:
        with self._lock:
            return list(self._freq)

    def frequencies(self, context: Sequence[str]) -> Dict[str, int]:
        """Return a copy of the next-token counts for a context."""
        with self._lock:
            table = self._freq.get(tuple(context))
            if table is None:
                raise UnknownContextError(context)
            return dict(table)

    def generate(self, context: Sequence[str]) -> str:
        """Sample the next token for a context of exactly ``order`` tokens."""
        context = tuple(context)
        if len(context) != self._order:
            raise ValueError(
                f"context must have {self._order} tokens, got {len(context)}"
            )
        with self._lock:
            table = self._freq.get(context)
            if table is None:
                raise UnknownContextError(context)
            tokens = list(table)
            counts = [table[t] for t in tokens]

        if len(tokens) == 1:
            return tokens[0]
        weights = torch.tensor(counts, dtype=torch.float64)
        idx = torch.multinomial(weights, num_samples=1, generator=self.generator)
        return tokens[idx.item()]

    def generate_sequence(self) -> List[str]:
        """Sample one full document, without START padding or END."""
        tokens = [START_TOKEN] * self._order
        while True:
            next_token = self.generate(tokens[-self._order:])
            if next_token == END_TOKEN:
                break
            tokens.append(next_token)
        return tokens[self._order:]

    def to_dict(self) -> Dict[Context, Dict[str, int]]:
        with self._lock:
            return {context: dict(table) for context, table in self._freq.items()}

    def dumps(self) -> bytes:
        """Serialize the order and every frequency table as JSON."""
        transitions = [
            {'context': list(context), 'next': table}
            for context, table in self.to_dict().items()
        ]
        record = {'order': self._order, 'transitions': transitions}
        return json.dumps(record, ensure_ascii=False).encode('utf-8')

    @classmethod
    def loads(
        cls,
        data: Union[bytes, str],
        generator: Optional[torch.Generator] = None
    ) -> 'ChainModel':
        """Rebuild a chain from ``dumps`` output."""
        try:
            record = json.loads(data)
            chain = cls(record['order'], generator=generator)
            for entry in record['transitions']:
                context = tuple(entry['context'])
                if len(context) != chain.order:
                    raise ValueError(
                        f"context {list(context)!r} does not match order {chain.order}"
                    )
                if not all(isinstance(t, str) for t in context):
                    raise ValueError(f"context {list(context)!r} has non-string tokens")
                if context in chain._freq:
                    raise ValueError(f"duplicate context {list(context)!r}")
                table = Counter()
                for token, count in entry['next'].items():
                    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
                        raise ValueError(f"invalid count {count!r} for {token!r}")
                    table[token] = count
                if not table:
                    raise ValueError(f"empty frequency table for {list(context)!r}")
                chain._freq[context] = table
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ModelDecodeError(f"malformed chain data: {e}") from e
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ModelDecodeError(f"invalid chain record: {e}") from e
        return chain

    def save(self, path: Union[str, Path]) -> None:
        """Write the chain to a file."""
        path = Path(path)
        path.write_bytes(self.dumps())
        logger.info(f"Saved chain ({len(self)} contexts) to {path}")

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        order: int,
        generator: Optional[torch.Generator] = None
    ) -> 'ChainModel':
        """Load a chain from a file, or start empty if there is none."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.info(f"No chain at {path}, starting empty (order {order})")
            return cls(order, generator=generator)

        chain = cls.loads(data, generator=generator)
        if chain.order != order:
            logger.warning(
                f"Chain at {path} has order {chain.order}, ignoring requested order {order}"
            )
        logger.info(f"Loaded chain ({len(chain)} contexts) from {path}")
        return chain
