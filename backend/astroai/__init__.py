"""AstroAI: chat, recommendation and content search core for the Astro Intelligence site."""

__version__ = "1.0.0"
