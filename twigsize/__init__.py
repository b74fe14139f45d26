"""Code size profiling analyses over a graph of program items."""

__version__ = "0.1.0"