"""LLM transport: chat sessions, function calling and model construction."""

from .chat_model_factory import build_chat_model
from .functions import (
    FunctionChain,
    FunctionInvocationEmitter,
    PromptingFunction,
    create_calculator_functions,
    create_code_definition_functions,
    create_test_runner_functions,
    create_workspace_functions,
    evaluate_expression,
)
from .provider import ChatAPI, ChatSession, SessionChatAPI, coerce_content, new_session_id

__all__ = [
    "ChatAPI",
    "ChatSession",
    "FunctionChain",
    "FunctionInvocationEmitter",
    "PromptingFunction",
    "SessionChatAPI",
    "build_chat_model",
    "coerce_content",
    "create_calculator_functions",
    "create_code_definition_functions",
    "create_test_runner_functions",
    "create_workspace_functions",
    "evaluate_expression",
    "new_session_id",
]
