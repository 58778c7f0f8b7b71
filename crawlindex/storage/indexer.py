"""
Term counting for the inverted index.
"""

from collections import Counter
from typing import Dict, List


def tokenize(text: str) -> List[str]:
    """Split text on whitespace and lowercase every token."""
    if not text:
        return []
    return [token.lower() for token in text.split()]


def count_terms(text: str) -> Dict[str, int]:
    """Count occurrences of each distinct lowercase token."""
    return dict(Counter(tokenize(text)))
