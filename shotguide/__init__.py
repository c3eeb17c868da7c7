"""Product Shot Guide: plan a product photo shoot and render every shot with a generative AI service."""

__version__ = "1.0.0"
