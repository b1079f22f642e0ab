"""Tests for the command-line interface."""

import pytest

from minimarkov.cli import main
from minimarkov.models.chain import START_TOKEN, ChainModel


def write_pages(root, pages):
    root.mkdir()
    for number, titles in pages.items():
        (root / f"page-{number}.txt").write_text("\n".join(titles) + "\n", encoding="utf-8")


def test_train_then_generate(tmp_path, capsys):
    pages_dir = tmp_path / "pages"
    model = tmp_path / "markov.json"
    write_pages(pages_dir, {1: ["buy the dip"], 2: ["buy the dip"]})

    main(["--model", str(model), "--order", "2", "train",
          "--pages", str(pages_dir), "--start", "1", "--end", "3", "--workers", "2"])

    chain = ChainModel.load(model, 2)
    assert chain.frequencies([START_TOKEN, START_TOKEN]) == {"buy": 2}

    main(["--model", str(model), "--order", "2", "generate", "-n", "2", "--seed", "1"])
    assert capsys.readouterr().out.splitlines() == ["buy the dip", "buy the dip"]


def test_training_accumulates_across_runs(tmp_path):
    pages_dir = tmp_path / "pages"
    model = tmp_path / "markov.json"
    write_pages(pages_dir, {1: ["hodl"]})
    args = ["--model", str(model), "--order", "1", "train",
            "--pages", str(pages_dir), "--start", "1", "--end", "2"]

    main(args)
    main(args)
    assert ChainModel.load(model, 1).frequencies([START_TOKEN]) == {"hodl": 2}


def test_missing_page_exits_without_saving(tmp_path):
    pages_dir = tmp_path / "pages"
    model = tmp_path / "markov.json"
    write_pages(pages_dir, {1: ["only page"]})

    with pytest.raises(SystemExit) as excinfo:
        main(["--model", str(model), "train",
              "--pages", str(pages_dir), "--start", "1", "--end", "3", "--workers", "2"])
    assert excinfo.value.code == 1
    assert not model.exists()


def test_generate_from_untrained_model_fails(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--model", str(tmp_path / "none.json"), "generate"])
    assert excinfo.value.code == 1
