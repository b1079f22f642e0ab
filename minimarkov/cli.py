"""Command-line interface for training and generation."""

import argparse
import logging
import os
import sys
from pathlib import Path

import torch

from minimarkov.models.chain import ChainModel, MarkovError
from minimarkov.data.dataset import PageDirectorySource
from minimarkov.utils.trainer import Generator, TrainConfig, run_parallel_training


logger = logging.getLogger(__name__)


def setup_logging(level=logging.INFO):
    """Configure logging."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def train(config: TrainConfig) -> ChainModel:
    """Train the chain on a range of saved pages."""
    chain = ChainModel.load(config.model_path, config.order)
    source = PageDirectorySource(config.pages_dir)

    logger.info(
        f"Training on pages {config.start}..{config.end} with {config.workers} workers"
    )
    chain = run_parallel_training(chain, config.units, config.workers, source)
    chain.save(config.model_path)
    logger.info("Training complete!")
    return chain


def generate(args):
    """Print titles sampled from a trained chain."""
    rng = None
    if args.seed is not None:
        rng = torch.Generator().manual_seed(args.seed)

    chain = ChainModel.load(args.model, args.order, generator=rng)
    generator = Generator(chain)
    for _ in range(args.n):
        print(generator.generate())


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Train and sample a Markov chain of post titles'
    )
    parser.add_argument(
        '--model',
        type=Path,
        default=Path('markov.json'),
        help='Chain file to load and save'
    )
    parser.add_argument('--order', type=int, default=4, help='Markov chain order')
    parser.add_argument('-v', '--verbose', action='store_true')

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Training arguments
    train_parser = subparsers.add_parser('train')
    train_parser.add_argument(
        '--pages',
        type=Path,
        default=Path('pages'),
        help='Directory of page-<n>.txt title files'
    )
    train_parser.add_argument('--start', type=int, default=1, help='First page (inclusive)')
    train_parser.add_argument('--end', type=int, default=1, help='Last page (exclusive)')
    train_parser.add_argument('--workers', type=int, default=os.cpu_count() or 1)

    # Generation arguments
    generate_parser = subparsers.add_parser('generate')
    generate_parser.add_argument('-n', type=int, default=1, help='Number of titles')
    generate_parser.add_argument('--seed', type=int)

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == 'train':
            train(TrainConfig(
                order=args.order,
                start=args.start,
                end=args.end,
                workers=args.workers,
                model_path=args.model,
                pages_dir=args.pages,
            ))
        else:
            generate(args)
    except (MarkovError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
