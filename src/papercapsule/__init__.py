"""
PaperCapsule - multi-source paper aggregation and local reading analytics.
"""

__version__ = "0.1.0"
