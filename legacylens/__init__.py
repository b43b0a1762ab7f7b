"""
LegacyLens: legacy code intent extraction and migration roadmapping.
"""

__version__ = "1.0.0"
