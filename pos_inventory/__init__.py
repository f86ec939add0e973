"""Point-of-sale core for cut-to-order glass, aluminum, pipe and sundries."""

__version__ = "1.0.0"
