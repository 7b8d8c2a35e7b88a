"""Orchestrate API clients and services."""
