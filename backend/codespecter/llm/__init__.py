from .client import ChatCompletionsClient, LLMConfig, LLMResponse, create_client

__all__ = [
    "ChatCompletionsClient",
    "LLMConfig",
    "LLMResponse",
    "create_client",
]
