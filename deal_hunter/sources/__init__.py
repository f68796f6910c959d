"""
Sources package - Extractors for auction listing data.

Each extractor module handles:
1. Loading the target site within a time budget
2. Locating the auction records (API payload or rendered cards)
3. Returning raw record dicts for normalization
"""

from .base import BaseExtractor, ExtractionError

__all__ = [
    "BaseExtractor",
    "ExtractionError",
]
