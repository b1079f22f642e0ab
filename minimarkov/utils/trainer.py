"""Utilities for parallel training and generation."""

import logging
import os
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Hashable, List, Sequence, TypeVar

from minimarkov.models.chain import ChainModel, MarkovError


logger = logging.getLogger(__name__)

Unit = TypeVar('Unit', bound=Hashable)
FetchFn = Callable[[Unit], List[List[str]]]


class TrainingError(MarkovError):
    """A worker failed to obtain its documents."""


@dataclass
class TrainConfig:
    """Configuration for a training run."""
    order: int = 4
    start: int = 1
    end: int = 1
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    model_path: Path = Path('markov.json')
    pages_dir: Path = Path('pages')

    @property
    def units(self) -> range:
        return range(self.start, self.end)


def partition_units(units: Sequence[Unit], workers: int) -> List[List[Unit]]:
    """Split units into ``workers`` contiguous shards.

    Shard sizes differ by at most one; the first ``len(units) % workers``
    shards take the extra unit.
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")
    units = list(units)
    piece, rem = divmod(len(units), workers)
    shards = []
    start = 0
    for i in range(workers):
        size = piece + 1 if i < rem else piece
        shards.append(units[start:start + size])
        start += size
    return shards


class ParallelTrainer:
    """Fans work units out to a thread pool and merges into one chain."""

    def __init__(
        self,
        model: ChainModel,
        fetch: FetchFn,
        workers: int = 1,
    ):
        """
        Args:
            model: Chain that receives the counts once every worker succeeds
            fetch: Returns the documents (token lists) for one unit
            workers: Number of shards to run concurrently
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.model = model
        self.fetch = fetch
        self.workers = workers

    def _train_shard(
        self,
        worker: int,
        shard: List[Unit],
        staging: ChainModel,
        stop: threading.Event,
    ) -> int:
        added = 0
        for unit in shard:
            if stop.is_set():
                logger.debug(f"Worker {worker} stopping early")
                break
            try:
                documents = self.fetch(unit)
                for document in documents:
                    tokens = list(document or [])
                    staging.add(tokens)
                    logger.debug("Add %r: %r", unit, ' '.join(tokens))
            except Exception as e:
                stop.set()
                logger.error(f"Worker {worker} cannot read unit {unit!r}: {e}")
                raise TrainingError(f"cannot read unit {unit!r}: {e}") from e
            added += len(documents)
        return added

    def run(self, units: Sequence[Unit]) -> ChainModel:
        """Train on every unit; the model is left untouched on failure."""
        shards = partition_units(units, self.workers)
        busy = [(i, shard) for i, shard in enumerate(shards) if shard]
        staging = ChainModel(self.model.order)
        stop = threading.Event()

        for i, shard in busy:
            logger.info(f"Worker {i}: {len(shard)} units ({shard[0]!r}..{shard[-1]!r})")

        if busy:
            with ThreadPoolExecutor(max_workers=len(busy)) as pool:
                futures = [
                    pool.submit(self._train_shard, i, shard, staging, stop)
                    for i, shard in busy
                ]
                _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
                for future in not_done:
                    future.cancel()
            # the pool has joined every worker here
            errors = [f.exception() for f in futures if not f.cancelled() and f.exception()]
            if errors:
                raise errors[0]
            total = sum(f.result() for f in futures)
        else:
            total = 0

        self.model.merge(staging)
        logger.info(f"Trained on {total} documents from {sum(map(len, shards))} units")
        return self.model


def run_parallel_training(
    model: ChainModel,
    units: Sequence[Unit],
    workers: int,
    fetch: FetchFn,
) -> ChainModel:
    """Train ``model`` on ``units`` using ``workers`` threads."""
    return ParallelTrainer(model, fetch, workers).run(units)


class Generator:
    """Title generation helper for chain models."""

    def __init__(self, model: ChainModel):
        self.model = model

    def generate(self) -> str:
        """Sample one title as a space-joined string."""
        return ' '.join(self.model.generate_sequence())

    def generate_many(self, n: int) -> List[str]:
        return [self.generate() for _ in range(n)]
