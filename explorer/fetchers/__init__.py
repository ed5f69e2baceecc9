"""
Page rendering for the exploration loop.

Product pages load their gallery lazily, so pages are rendered in a headless
browser (Playwright) before extraction.
"""

from .playwright_renderer import PlaywrightRenderer, load_cookies, normalize_cookie

__all__ = [
    "PlaywrightRenderer",
    "load_cookies",
    "normalize_cookie",
]
