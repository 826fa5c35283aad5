# Core game rules: grid generation, dictionary, word validation and scoring.
# Formability is a letter-availability check only: every letter of the word
# must appear somewhere in the grid. Adjacency and letter multiplicity are
# deliberately not checked.

from __future__ import annotations
import logging
import random
import string
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .config import GRID_SIZE

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase

Grid = Tuple[Tuple[str, ...], ...]

INVALID_PENALTY = -1
SHORT_WORD_POINTS = 1
LONG_WORD_POINTS = 3
LONG_WORD_LENGTH = 5


class DictionaryLoadError(RuntimeError):
    """The word list could not be read or was empty."""


def generate_grid(size: int = GRID_SIZE, rng: Optional[random.Random] = None) -> Grid:
    """Fill a size x size grid row-major from a shuffled A-Z permutation.

    Letters are drawn without replacement, so no letter repeats within one
    grid. That caps the grid at 26 cells.
    """
    if size < 1 or size * size > len(ALPHABET):
        raise ValueError(f"grid size must be between 1 and 5, got {size}")
    letters = list(ALPHABET)
    (rng or random).shuffle(letters)
    return tuple(tuple(letters[r * size:(r + 1) * size]) for r in range(size))


def grid_letters(grid: Grid) -> FrozenSet[str]:
    return frozenset(ch for row in grid for ch in row)


def grid_to_lines(grid: Grid) -> List[str]:
    return [" ".join(row) for row in grid]


def load_dictionary(path: Path) -> FrozenSet[str]:
    words = set()
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                w = line.strip().upper()
                if w:
                    words.add(w)
    except OSError as exc:
        raise DictionaryLoadError(f"Cannot read dictionary {path}: {exc}") from exc
    if not words:
        raise DictionaryLoadError(f"Dictionary {path} is empty.")
    logger.info("Dictionary loaded successfully: %d words from %s", len(words), path)
    return frozenset(words)


class Dictionary:
    """Read-only uppercase word set shared by every session."""

    def __init__(self, words: Iterable[str]):
        self._words = frozenset(w.strip().upper() for w in words if w.strip())

    @classmethod
    def from_file(cls, path: Path) -> "Dictionary":
        return cls(load_dictionary(path))

    def contains(self, word: str) -> bool:
        return word.upper() in self._words

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._words)


def is_dictionary_word(word: str, dictionary: Dictionary) -> bool:
    return dictionary.contains(word)


def is_formable_from_grid(word: str, grid: Grid) -> bool:
    available = grid_letters(grid)
    return all(ch in available for ch in word.upper())


def score_word(word: str, valid: bool) -> int:
    if not valid:
        return INVALID_PENALTY
    return LONG_WORD_POINTS if len(word) >= LONG_WORD_LENGTH else SHORT_WORD_POINTS
