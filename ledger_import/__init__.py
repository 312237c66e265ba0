"""Format-inferring import pipeline for tabular financial exports."""

__version__ = "0.1.0"
