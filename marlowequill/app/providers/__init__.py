"""Generation backends for the content service.

This package provides:
- Base provider interface (BaseProvider)
- Gemini implementation (GeminiProvider)
- Local mock (MockProvider)
- Construction from settings (create_provider)
"""

from marlowequill.app.providers.base import BaseProvider
from marlowequill.app.providers.factory import create_provider
from marlowequill.app.providers.gemini import GeminiProvider
from marlowequill.app.providers.mock import MockProvider

__all__ = [
    "BaseProvider",
    "GeminiProvider",
    "MockProvider",
    "create_provider",
]
