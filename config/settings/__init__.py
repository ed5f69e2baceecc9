"""
Settings entry point.

``DJANGO_ENV`` selects the environment module (development, test or
production). Anything else falls back to development so a bare checkout can
run ``manage.py explore_site`` against a local SQLite database.
"""

import os

DJANGO_ENV = os.getenv("DJANGO_ENV", "development")

if DJANGO_ENV == "production":
    from .production import *
elif DJANGO_ENV == "test":
    from .test import *
else:
    from .development import *
