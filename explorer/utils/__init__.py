"""
Utility functions for the explorer application.

- text.py: accent folding, whitespace collapsing, number and price parsing,
  image identifier extraction.
"""
