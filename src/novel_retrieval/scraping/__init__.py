"""Batch scheduling, retries and the two-pass scrape pipeline."""

from novel_retrieval.scraping.job import ScrapeJob
from novel_retrieval.scraping.pipeline import ChapterPipeline
from novel_retrieval.scraping.retry import RetryOrchestrator, placeholder_body
from novel_retrieval.scraping.scheduler import BatchScheduler

__all__ = [
    "BatchScheduler",
    "ChapterPipeline",
    "RetryOrchestrator",
    "ScrapeJob",
    "placeholder_body",
]
