"""External metadata services."""

from reelsynth.services.metadata.enrichment import MetadataEnricher, needs_enrichment
from reelsynth.services.metadata.tmdb import TMDBCatalogClient

__all__ = ["MetadataEnricher", "TMDBCatalogClient", "needs_enrichment"]
