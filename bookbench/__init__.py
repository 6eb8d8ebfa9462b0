"""Synthetic data generation, CSV loading and database benchmarks."""

__version__ = "1.0.0"
