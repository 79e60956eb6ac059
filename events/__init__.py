"""Event type definitions for inter-service communication."""

from .listings import ListingImagesDiscarded

__all__ = ["ListingImagesDiscarded"]
