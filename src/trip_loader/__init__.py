"""
trip-loader: streaming taxi trip loader with duplicate reconciliation.
"""

__version__ = "0.1.0"
