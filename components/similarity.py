"""Pairwise text similarity between initiative subjects.

Scores are always in [0, 1]. The rapidfuzz algorithms run through
``process.cdist`` so a whole pool is scored in one call, fanned out over
``workers`` threads; ``cosine`` uses a TF-IDF model fitted on the texts
being compared.

Cost: scoring n subjects of average length L against each other is
O(n^2 * L) time. A full matrix needs n^2 floats (8 bytes each, twice that
for ``combined``), so large pools should go through iter_similarity_rows,
which holds only chunk_rows x n at a time.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Sequence

import numpy as np
from rapidfuzz import fuzz, process
from rapidfuzz.distance import JaroWinkler, Levenshtein
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from components.errors import ConfigError
from components.models import Initiative
from components.utils import normalize_for_matching

logger = logging.getLogger(__name__)

ALGORITHMS = ("levenshtein", "jaro_winkler", "combined", "token_set", "cosine")
DEFAULT_ALGORITHM = "levenshtein"
DEFAULT_THRESHOLD = 0.6
COMBINED_WEIGHTS = (0.7, 0.3)  # Jaro-Winkler, Levenshtein
CHUNK_ROWS = 512


def is_same_item(target: Initiative, candidate: Initiative) -> bool:
    """Whether candidate is the target itself (same object or expediente)."""
    if candidate is target:
        return True
    return bool(target.expediente) and candidate.expediente == target.expediente


class SimilarityMatcher:
    """Scores subject similarity with a pluggable algorithm."""

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        threshold: float = DEFAULT_THRESHOLD,
        workers: int = 1,
    ) -> None:
        """Initialize matcher.

        Args:
            algorithm: One of ALGORITHMS
            threshold: Minimum score for a match, in [0, 1]
            workers: Threads for cdist (-1 = all cores)

        Raises:
            ConfigError: unknown algorithm or threshold out of range
        """
        if algorithm not in ALGORITHMS:
            raise ConfigError(
                f"Unknown similarity algorithm {algorithm!r}; "
                f"expected one of {', '.join(ALGORITHMS)}"
            )
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"Similarity threshold must be in [0, 1], got {threshold}")
        self.algorithm = algorithm
        self.threshold = threshold
        self.workers = workers

    @classmethod
    def from_config(cls, config) -> "SimilarityMatcher":
        """Build a matcher from a Config.Similarity section."""
        return cls(config.algorithm, config.threshold, config.workers)

    def similarity_matrix(
        self, texts: Sequence[str], others: Optional[Sequence[str]] = None
    ) -> np.ndarray:
        """Score every text against every other text.

        O(len(texts) * len(others) * L) time and a dense matrix of the
        same shape in memory.

        Args:
            texts: Raw subject texts (rows)
            others: Raw texts for the columns (defaults to texts)

        Returns:
            len(texts) x len(others) float matrix; rows or columns for
            empty texts are 0
        """
        rows = [normalize_for_matching(text) for text in texts]
        cols = rows if others is None else [normalize_for_matching(t) for t in others]
        if not rows or not cols:
            return np.zeros((len(rows), len(cols)))
        corpus = rows if others is None else rows + cols
        vectorizer = self._fit_tfidf(corpus) if self.algorithm == "cosine" else None
        return self._scores(rows, cols, vectorizer)

    def iter_similarity_rows(
        self, texts: Sequence[str], chunk_rows: int = CHUNK_ROWS
    ) -> Iterator[tuple[int, np.ndarray]]:
        """Score texts against themselves a block of rows at a time.

        Same scores as similarity_matrix(texts), but memory stays at
        chunk_rows x n. Time is still O(n^2 * L).

        Yields:
            (index of the block's first row, chunk x n block)
        """
        if chunk_rows < 1:
            raise ConfigError(f"chunk_rows must be positive, got {chunk_rows}")
        cols = [normalize_for_matching(text) for text in texts]
        if not cols:
            return
        vectorizer = self._fit_tfidf(cols) if self.algorithm == "cosine" else None
        col_vectors = vectorizer.transform(cols) if vectorizer is not None else None
        for start in range(0, len(cols), chunk_rows):
            rows = cols[start:start + chunk_rows]
            yield start, self._scores(rows, cols, vectorizer, col_vectors)

    def _scores(
        self, rows: list[str], cols: list[str], vectorizer=None, col_vectors=None
    ) -> np.ndarray:
        if self.algorithm == "cosine":
            if vectorizer is None:
                matrix = np.zeros((len(rows), len(cols)))
            else:
                if col_vectors is None:
                    col_vectors = vectorizer.transform(cols)
                matrix = cosine_similarity(vectorizer.transform(rows), col_vectors)
        elif self.algorithm == "combined":
            jw_weight, lev_weight = COMBINED_WEIGHTS
            matrix = jw_weight * self._cdist(rows, cols, JaroWinkler.normalized_similarity)
            matrix += lev_weight * self._cdist(rows, cols, Levenshtein.normalized_similarity)
        elif self.algorithm == "jaro_winkler":
            matrix = self._cdist(rows, cols, JaroWinkler.normalized_similarity)
        elif self.algorithm == "token_set":
            matrix = self._cdist(rows, cols, fuzz.token_set_ratio) / 100.0
        else:
            matrix = self._cdist(rows, cols, Levenshtein.normalized_similarity)
        empty_rows = np.array([not text for text in rows])
        empty_cols = np.array([not text for text in cols])
        matrix[empty_rows, :] = 0.0
        matrix[:, empty_cols] = 0.0
        return np.clip(matrix, 0.0, 1.0)

    def _cdist(self, rows: list[str], cols: list[str], scorer) -> np.ndarray:
        return process.cdist(
            rows, cols, scorer=scorer, dtype=np.float64, workers=self.workers
        )

    def _fit_tfidf(self, texts: list[str]) -> Optional[TfidfVectorizer]:
        corpus = [text for text in texts if text]
        if not corpus:
            return None
        vectorizer = TfidfVectorizer()
        try:
            vectorizer.fit(corpus)
        except ValueError:
            # Empty vocabulary: every text is too short to tokenize
            logger.debug("No TF-IDF vocabulary for %d texts", len(corpus))
            return None
        return vectorizer

    def score(self, first: str, second: str) -> float:
        """Similarity of two raw texts."""
        return float(self.similarity_matrix([first], [second])[0, 0])

    def find_similar(
        self, target: Initiative, pool: Sequence[Initiative]
    ) -> list[tuple[Initiative, float]]:
        """Find pool members whose subject resembles the target's.

        Args:
            target: Initiative to compare against
            pool: Candidates (the target itself is skipped)

        Returns:
            (candidate, score) pairs with score >= threshold, best first;
            ties keep pool order
        """
        candidates = [c for c in pool if not is_same_item(target, c)]
        if not candidates:
            return []
        scores = self.similarity_matrix(
            [target.subject], [c.subject for c in candidates]
        )[0]
        matches = [
            (candidate, float(score))
            for candidate, score in zip(candidates, scores)
            if score >= self.threshold
        ]
        return sorted(matches, key=lambda pair: -pair[1])


def find_similar(
    target: Initiative,
    pool: Sequence[Initiative],
    threshold: float = DEFAULT_THRESHOLD,
    algorithm: str = DEFAULT_ALGORITHM,
) -> list[tuple[Initiative, float]]:
    """Module-level shortcut for SimilarityMatcher.find_similar."""
    return SimilarityMatcher(algorithm, threshold).find_similar(target, pool)
