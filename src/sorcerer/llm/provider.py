"""Session-based chat API with function calling, on top of a LangChain chat model."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import BaseTool

from .functions import FunctionInvocationEmitter, PromptingFunction

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatAPI(Protocol):
    """Multi-turn chat transport used by the generator, fixer and enhancer.

    ``system_prompt`` is sent with every request and is not stored in the
    session; ``active_session_id`` is the session of the latest prompt.
    """

    system_prompt: str
    active_session_id: Optional[str]

    def prompt(self, session_id: str, text: str) -> str:
        """Send ``text`` in session ``session_id`` and return the final answer."""
        ...


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ChatSession:
    """Transcript of one conversation."""

    session_id: str
    messages: list[BaseMessage] = field(default_factory=list)

    def add_user_prompt(self, text: str) -> None:
        self.messages.append(HumanMessage(content=text))

    def add_bot_result(self, text: str) -> None:
        self.messages.append(AIMessage(content=text))


class SessionChatAPI:
    """ChatAPI implementation keeping one transcript per session id.

    Functions are bound as tools; when the model asks for a function the
    result is sent back and the model re-invoked, up to
    ``max_function_rounds`` times per prompt.
    """

    def __init__(
        self,
        model: BaseChatModel,
        functions: Iterable[BaseTool] = (),
        prompting_functions: Iterable[PromptingFunction] = (),
        emitter: FunctionInvocationEmitter | None = None,
        max_function_rounds: int = 8,
        transmit_function_results: bool = False,
    ):
        """Initialize the API.

        Args:
            model: LangChain chat model
            functions: Tools the model may call
            prompting_functions: Functions that prompt through this API;
                they receive it via ``install_api`` once it exists
            emitter: Receives invocation/result notifications
            max_function_rounds: Upper bound on function round-trips per prompt
            transmit_function_results: Keep function calls and results in the
                session history (they can be very large)
        """
        self.system_prompt = ""
        self.active_session_id: Optional[str] = None
        self.emitter = emitter or FunctionInvocationEmitter()
        self.max_function_rounds = max_function_rounds
        self.transmit_function_results = transmit_function_results
        self._sessions: dict[str, ChatSession] = {}

        self._functions: dict[str, BaseTool] = {fn.name: fn for fn in functions}
        for prompter in prompting_functions:
            as_tool = prompter.as_tool()
            self._functions[as_tool.name] = as_tool
            prompter.install_api(self)

        self._model = model
        self._runnable = model.bind_tools(list(self._functions.values())) if self._functions else model

    @property
    def function_names(self) -> list[str]:
        return sorted(self._functions)

    def session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    def prompt(self, session_id: str, text: str) -> str:
        """Send a prompt within a session.

        Args:
            session_id: Session to continue (created when unknown)
            text: User prompt

        Returns:
            The model's final text answer

        Raises:
            RuntimeError: If the model call fails or keeps calling functions
        """
        self.active_session_id = session_id
        session = self._sessions.setdefault(session_id, ChatSession(session_id))
        session.add_user_prompt(text)

        messages: list[BaseMessage] = []
        if self.system_prompt:
            messages.append(SystemMessage(content=self.system_prompt))
        messages.extend(session.messages)

        try:
            response = self._runnable.invoke(messages)
            rounds = 0
            while getattr(response, "tool_calls", None):
                rounds += 1
                if rounds > self.max_function_rounds:
                    raise RuntimeError(
                        f"Model requested functions more than {self.max_function_rounds} times"
                    )
                results = [self._call_function(call) for call in response.tool_calls]
                messages.append(response)
                messages.extend(results)
                if self.transmit_function_results:
                    session.messages.append(response)
                    session.messages.extend(results)
                response = self._runnable.invoke(messages)
        except Exception as e:
            raise RuntimeError(f"LLM generation failed: {str(e)}") from e

        content = coerce_content(response.content)
        session.add_bot_result(content)
        return content

    def _call_function(self, call: dict) -> ToolMessage:
        name = call.get("name", "")
        arguments = call.get("args", {}) or {}
        function = self._functions.get(name)

        if function is None:
            payload: Any = {"error": f"Unknown function '{name}'"}
        else:
            self.emitter.invocation(name, arguments)
            try:
                payload = function.invoke(arguments)
            except Exception as e:
                logger.warning("Function %s failed: %s", name, e)
                payload = {"error": str(e)}
            self.emitter.result(name, payload)

        content = payload if isinstance(payload, str) else json.dumps(payload, default=str)
        return ToolMessage(content=content, tool_call_id=call.get("id") or name, name=name)


def coerce_content(content: Any) -> str:
    """Ensure LangChain responses are flattened into plain text."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
                continue

            text = getattr(block, "text", None)
            if text:
                parts.append(text)
                continue

            if isinstance(block, dict):
                text = block.get("text")
                if text:
                    parts.append(text)
                continue
        return "".join(parts).strip()

    return str(content)
