"""Relational and document storage, plus database CLI tools."""
