"""Embedding provider adapters — one per external API."""

from .openrouter_embedding_provider import OpenRouterEmbeddingProvider
from .vertex_embedding_provider import VertexEmbeddingProvider

__all__ = ["OpenRouterEmbeddingProvider", "VertexEmbeddingProvider"]
