"""gridcalc -- integer formula language for a 16x16 grid of cells."""

__version__ = "0.1.0"
