"""
Comparable-sales market analysis for auction items.
"""

__version__ = "0.1.0"
