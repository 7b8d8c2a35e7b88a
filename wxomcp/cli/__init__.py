"""Command line interface for wxomcp."""
