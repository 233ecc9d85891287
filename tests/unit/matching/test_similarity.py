from __future__ import annotations

import pytest

from pharmacy_import.matching.similarity import levenshtein, similarity


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "abc", 0),
        ("flaw", "lawn", 2),
    ],
)
def test_levenshtein(a: str, b: str, expected: int) -> None:
    assert levenshtein(a, b) == expected
    assert levenshtein(b, a) == expected


def test_similarity_of_a_typo() -> None:
    assert similarity("Pain Releif", "Pain Relief") == pytest.approx(1 - 2 / 11)


def test_similarity_is_case_and_whitespace_insensitive() -> None:
    assert similarity("  PAIN relief", "pain Relief ") == 1.0


def test_similarity_bounds() -> None:
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0
    assert similarity("abc", "xyz") == 0.0


@pytest.mark.parametrize(("a", "b"), [("Antibiotics", "Antibiotic Creams"), ("Eye", "Ear"), ("a", "")])
def test_similarity_is_symmetric(a: str, b: str) -> None:
    assert similarity(a, b) == similarity(b, a)
