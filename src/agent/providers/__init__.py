"""Provider gateway and backend adapters.

The routing core talks to backends only through ProviderGateway, which
dispatches to a ModelProvider per ProviderType. Adapters:

- LiteLLMProvider: production adapter routed through the LiteLLM proxy
- MockProvider (src.testing.mock_provider): deterministic offline adapter
"""

from __future__ import annotations

from src.agent.providers.base import ModelProvider
from src.agent.providers.gateway import ProviderGateway
from src.agent.providers.litellm_provider import LiteLLMProvider
from src.agent.providers.stream import CompletionStream

__all__ = [
    "CompletionStream",
    "LiteLLMProvider",
    "ModelProvider",
    "ProviderGateway",
]
