"""Chapter text extraction from HTML pages."""

from novel_retrieval.extractor.main_content import ContentExtractor, ExtractedContent
from novel_retrieval.extractor.sanitizer import Sanitizer
from novel_retrieval.extractor.strategies import ExtractionStrategy, StrategyRegistry

__all__ = [
    "ContentExtractor",
    "ExtractedContent",
    "ExtractionStrategy",
    "Sanitizer",
    "StrategyRegistry",
]
