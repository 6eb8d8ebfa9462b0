"""Synthetic record generation."""

from bookbench.generation.generator import RecordGenerator
from bookbench.generation.writer import write_multiple_csv, write_records_csv

__all__ = ["RecordGenerator", "write_multiple_csv", "write_records_csv"]
