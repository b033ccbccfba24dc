"""Configuration settings and constants for journal-guard.

Everything lives in `config.settings`; this package re-exports it so
application code can write `from config import DEFAULT_ITERATIONS`.
"""

from .settings import *  # noqa: F401,F403
from .settings import __all__  # noqa: F401
