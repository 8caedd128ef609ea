"""
BrandVision — brand research and per-platform marketing creatives with Gemini.
"""

__version__ = "0.1.0"
