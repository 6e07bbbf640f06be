"""
Known service matching for statement labels.
Uses substring lookup first, then Levenshtein similarity on label n-grams.
"""
from typing import Mapping, Optional

import Levenshtein

from core.catalog import DEFAULT_CATALOG
from core.logger import setup_logger
from core.normalize import normalize_label
from core.schema import KnownService

logger = setup_logger(__name__)

# Short keywords ("edf", "sfr") produce too many near misses to fuzzy match
MIN_FUZZY_KEYWORD_LENGTH = 5


def normalize_string(text: Optional[str]) -> str:
    """
    Normalize string for matching: lowercase, trim, remove extra spaces.

    Args:
        text: Input string

    Returns:
        Normalized string
    """
    if not text or not isinstance(text, str):
        return ""

    return " ".join(text.lower().strip().split())


def calculate_similarity(s1: str, s2: str) -> float:
    """
    Calculate Levenshtein similarity ratio between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Similarity score (0.0 to 1.0)
    """
    s1_norm = normalize_string(s1)
    s2_norm = normalize_string(s2)

    if not s1_norm or not s2_norm:
        return 0.0

    return Levenshtein.ratio(s1_norm, s2_norm)


class ServiceMatcher:
    """Resolve a statement label to a catalog entry."""

    def __init__(
        self,
        services: Optional[Mapping[str, KnownService]] = None,
        fuzzy_threshold: Optional[float] = 0.88
    ):
        """
        Args:
            services: keyword -> KnownService table (defaults to the bundled catalog)
            fuzzy_threshold: Minimum Levenshtein ratio for a fuzzy hit, None disables fuzzy matching
        """
        self.services = DEFAULT_CATALOG.services if services is None else services
        self.fuzzy_threshold = fuzzy_threshold

    def find_exact(self, label: str) -> Optional[KnownService]:
        """First catalog keyword contained in the label, in table order."""
        lower_label = normalize_string(label)
        if not lower_label:
            return None
        for keyword, service in self.services.items():
            if keyword in lower_label:
                return service
        return None

    def find_fuzzy(self, label: str) -> Optional[KnownService]:
        """
        Best catalog keyword close to a word n-gram of the cleaned label.

        Only keywords of MIN_FUZZY_KEYWORD_LENGTH characters or more take
        part. Ties keep table order.
        """
        if not self.fuzzy_threshold:
            return None

        words = normalize_label(label).split()
        if not words:
            return None

        best: Optional[KnownService] = None
        best_score = 0.0
        for keyword, service in self.services.items():
            if len(keyword) < MIN_FUZZY_KEYWORD_LENGTH:
                continue
            size = len(keyword.split())
            for start in range(len(words) - size + 1):
                candidate = " ".join(words[start:start + size])
                score = calculate_similarity(candidate, keyword)
                if score >= self.fuzzy_threshold and score > best_score:
                    best, best_score = service, score

        if best is not None:
            logger.debug(f"Label '{label}' fuzzy matched {best.name} (score={best_score:.2f})")
        return best

    def match(self, label: str) -> Optional[KnownService]:
        """
        Find the known service a label refers to.

        Args:
            label: Raw statement label

        Returns:
            KnownService or None when the merchant is not in the catalog
        """
        return self.find_exact(label) or self.find_fuzzy(label)
