"""Transaction extraction from bank pages.

Components:
- cleaner: text normalization shared by every extraction path
- structural: strategy-based extraction over a DOM snapshot
- dedupe: intra-batch duplicate removal
- vision: screenshot extraction with Claude
- orchestrator: vision first, structural fallback
"""

from .cleaner import clean, clean_amount, clean_category, clean_description
from .dedupe import dedupe
from .models import CandidateTransaction, PageSnapshot, RawRow, ScrapeMethod, ScrapeResult
from .orchestrator import ScrapeError, ScrapeOrchestrator, scrape
from .strategies import DEFAULT_STRATEGIES, ExtractionStrategy, infer_category
from .structural import StructuralExtractor, extract
from .vision import VisionExtractionError, VisionExtractor

__all__ = [
    "clean",
    "clean_amount",
    "clean_category",
    "clean_description",
    "dedupe",
    "CandidateTransaction",
    "PageSnapshot",
    "RawRow",
    "ScrapeMethod",
    "ScrapeResult",
    "ScrapeError",
    "ScrapeOrchestrator",
    "scrape",
    "DEFAULT_STRATEGIES",
    "ExtractionStrategy",
    "infer_category",
    "StructuralExtractor",
    "extract",
    "VisionExtractionError",
    "VisionExtractor",
]
