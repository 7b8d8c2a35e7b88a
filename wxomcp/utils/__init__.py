"""Utility helpers for wxomcp."""
