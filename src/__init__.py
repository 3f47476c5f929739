"""Health-system enrichment - fuzzy directory matching and AI-assisted data enrichment."""

__version__ = "0.1.0"
