"""Post-fetch result pipeline."""

from .dedup import DedupConfig, deduplicate

__all__ = ["DedupConfig", "deduplicate"]
