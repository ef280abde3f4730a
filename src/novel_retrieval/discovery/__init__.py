"""Chapter discovery from listing pages."""

from novel_retrieval.discovery.base import DiscoveryRule, LinkCandidate, ListingPage, parse_chapter_number
from novel_retrieval.discovery.discoverer import ChapterDiscoverer
from novel_retrieval.discovery.extrapolation import detect_reported_total, extrapolate_refs
from novel_retrieval.discovery.rules import (
    AnchorTextRule,
    ContainerSelectorRule,
    NumericUrlRule,
    SubListingRule,
    default_rules,
)

__all__ = [
    "AnchorTextRule",
    "ChapterDiscoverer",
    "ContainerSelectorRule",
    "DiscoveryRule",
    "LinkCandidate",
    "ListingPage",
    "NumericUrlRule",
    "SubListingRule",
    "default_rules",
    "detect_reported_total",
    "extrapolate_refs",
    "parse_chapter_number",
]
