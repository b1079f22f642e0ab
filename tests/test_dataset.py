"""Tests for title loading and tokenizing."""

import pytest

from minimarkov.data.dataset import PageDirectorySource, read_titles, split_title


def test_split_title_on_whitespace_runs():
    assert split_title("  BTC   to\tthe moon \n") == ["BTC", "to", "the", "moon"]
    assert split_title("") == []
    assert split_title("   ") == []


def test_read_titles_skips_blank_lines(tmp_path):
    path = tmp_path / "titles.txt"
    path.write_text("first title\n\n   \n second  title \n", encoding="utf-8")
    assert read_titles(path) == ["first title", "second  title"]


def test_page_source_returns_token_lists(tmp_path):
    (tmp_path / "page-3.txt").write_text("오늘 비트 어때요\nETH 가즈아\n", encoding="utf-8")
    source = PageDirectorySource(tmp_path)
    assert source(3) == [["오늘", "비트", "어때요"], ["ETH", "가즈아"]]


def test_page_source_missing_page(tmp_path):
    source = PageDirectorySource(tmp_path)
    with pytest.raises(FileNotFoundError):
        source(1)


def test_page_source_custom_pattern(tmp_path):
    (tmp_path / "board_9.txt").write_text("one two\n", encoding="utf-8")
    source = PageDirectorySource(tmp_path, pattern="board_{}.txt")
    assert source.path_for(9) == tmp_path / "board_9.txt"
    assert source(9) == [["one", "two"]]


def test_split_title_drops_sentinels():
    assert split_title("<s> closing </s> tag") == ["closing", "tag"]
