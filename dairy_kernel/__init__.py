"""
Dairy Kernel

Shared foundation for the dairy cooperative system:
- Decimal value parsing and rounding
- Milk type, shift and rate method vocabularies
- Typed exceptions
- Structured logging
- Row-store models (farmers, rate configurations, collection entries)
"""

__version__ = "0.1.0"
