"""Luna - tiered, rate-limited astrology conversations with streamed answers"""

__version__ = "1.0.0"
