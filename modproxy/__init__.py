"""Go module proxy backed by a mapped git host."""

__version__ = "0.3.0"
