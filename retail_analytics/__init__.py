"""
Retail Sales Analytics

Sales aggregation and classification engine for periodic retail extracts.
"""

__version__ = "1.0.0"
