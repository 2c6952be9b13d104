# referral_tracker/config/__init__.py
# Exposes the singleton 'settings' instance for clean importing.

from .settings import settings

__all__ = ["settings"]
