"""NomadPal city API — cities enriched with predicted scores."""

__version__ = "1.0.0"
