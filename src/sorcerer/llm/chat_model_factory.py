"""Chat model construction from LLM configuration."""

from __future__ import annotations

import logging
import warnings

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel

from ..config import LLMConfig

logger = logging.getLogger(__name__)


def _format_model_name_for_langchain(model_name: str) -> str:
    """Format model name for LangChain's init_chat_model.

    LangChain expects format: "provider:model"
    """
    if ":" in model_name:
        return model_name

    if model_name.startswith("gpt-") or model_name.startswith("o1"):
        return f"openai:{model_name}"
    elif model_name.startswith("claude"):
        return f"anthropic:{model_name}"
    elif model_name.startswith("gemini") or model_name.startswith("vertex"):
        return f"google-genai:{model_name}"
    else:
        return f"anthropic:{model_name}"


def build_chat_model(config: LLMConfig, debug: bool = False) -> BaseChatModel:
    """Build a chat model instance from config.

    LiteLLM is used when the provider is ``litellm`` or a custom base URL is
    configured; otherwise LangChain's ``init_chat_model`` picks the provider
    from the model name.

    Args:
        config: LLM section of the application configuration
        debug: Enable verbose logging

    Returns:
        Configured BaseChatModel instance
    """
    should_use_litellm = config.provider == "litellm" or config.base_url is not None

    logger.debug("Creating chat model:")
    logger.debug("  - model_name: %s", config.model_name)
    logger.debug("  - Using LiteLLM: %s", should_use_litellm)
    logger.debug("  - base_url: %s", config.base_url or "None")
    logger.debug("  - api_key: %s", "set" if config.api_key else "None")

    if should_use_litellm:
        return _build_litellm_model(config, debug)
    return _build_standard_model(config)


def _build_litellm_model(config: LLMConfig, debug: bool) -> BaseChatModel:
    """Build a ChatLiteLLM model instance."""
    from langchain_litellm import ChatLiteLLM

    # ChatLiteLLM results carry provider-specific metadata that pydantic
    # warns about on serialization
    warnings.filterwarnings(
        "ignore",
        message=r"Pydantic serializer warnings",
        category=UserWarning,
        module=r"pydantic\.main",
    )

    if debug:
        import litellm
        litellm.set_verbose = True

    litellm_kwargs: dict = {
        "model": config.model_name,
        "temperature": config.temperature,
    }

    if config.api_key:
        litellm_kwargs["api_key"] = config.api_key
    if config.base_url:
        litellm_kwargs["api_base"] = config.base_url
    if config.max_retries:
        litellm_kwargs["max_retries"] = config.max_retries
    if config.timeout:
        litellm_kwargs["request_timeout"] = config.timeout
    if config.max_tokens:
        litellm_kwargs["max_tokens"] = config.max_tokens

    return ChatLiteLLM(**litellm_kwargs)


def _build_standard_model(config: LLMConfig) -> BaseChatModel:
    """Build a standard LangChain chat model via init_chat_model."""
    formatted_model_name = _format_model_name_for_langchain(config.model_name)

    model_kwargs: dict = {
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "timeout": config.timeout,
        "max_retries": config.max_retries,
    }
    if config.api_key:
        model_kwargs["api_key"] = config.api_key

    logger.debug("  - Formatted model_name: %s", formatted_model_name)

    try:
        return init_chat_model(formatted_model_name, **model_kwargs)
    except Exception as e:
        if "404" in str(e) or "401" in str(e):
            raise RuntimeError(
                f"Failed to initialize model '{formatted_model_name}'.\n"
                f"For custom LiteLLM gateways, set LLM_PROVIDER=litellm in .env\n"
                f"Original error: {e}"
            ) from e
        raise
