"""
Routing graph stages backed by an OpenAI-compatible chat model.

Implements:
- ``ChatModelClassifier``: structured JSON output returning {choice, reasoning}
- Selector and category nodes built around any ``Classifier``
- ``McpSpecialist``: runs one catalog server over MCP stdio, wraps its tools
  as LangChain tools and lets the model call them until it answers
- The ``ask_starknet`` action used by the routing server

Model settings come from OPENAI_API_KEY, OPENAI_BASE_URL and OPENAI_MODEL.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Sequence

from dotenv import load_dotenv
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.tools import StructuredTool
from langchain_openai import ChatOpenAI
from langgraph.graph import END, START, MessagesState, StateGraph
from langgraph.prebuilt import ToolNode, tools_condition
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from pydantic import BaseModel, ConfigDict

import mcp_catalog
from routing_graph import (
    RoutingState,
    build_routing_graph,
    initial_state,
    message_text,
)
from starknet_errors import ConfigError
from tool_registry import tool_action
from tool_schemas import AskStarknetParams

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_MODEL = "gpt-4o-mini"
MAX_TOOL_ROUNDS = 10
HISTORY_SNIPPET = 500

MODEL_ENV = ("OPENAI_API_KEY", "OPENAI_BASE_URL", "OPENAI_MODEL")


class Classification(BaseModel):
    """A routing decision: one of the offered choices and the reason for it."""

    model_config = ConfigDict(frozen=True)

    choice: str = END
    reasoning: str = ""


class Classifier(Protocol):
    def __call__(
        self, system_prompt: str, user_prompt: str, choices: Sequence[str]
    ) -> Classification: ...


SpecialistRunner = Callable[[str, Sequence[BaseMessage], dict], Awaitable[str]]


def _routing_info(reasoning: str) -> dict[str, str]:
    return {
        "reasoning": reasoning,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def build_chat_model(environment: Optional[dict[str, str]] = None) -> ChatOpenAI:
    env = environment or {}
    api_key = env.get("OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigError("Missing required environment variable: OPENAI_API_KEY")
    base_url = env.get("OPENAI_BASE_URL") or os.getenv("OPENAI_BASE_URL") or None
    model = env.get("OPENAI_MODEL") or os.getenv("OPENAI_MODEL") or DEFAULT_MODEL
    return ChatOpenAI(model=model, api_key=api_key, base_url=base_url, temperature=0)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class ChatModelClassifier:
    """Ask the model to pick one of ``choices`` and explain why."""

    def __init__(self, model: BaseChatModel) -> None:
        self.structured = model.with_structured_output(
            Classification, method="json_mode", include_raw=True
        )

    @classmethod
    def from_env(cls, environment: Optional[dict[str, str]] = None) -> ChatModelClassifier:
        return cls(build_chat_model(environment))

    def __call__(
        self, system_prompt: str, user_prompt: str, choices: Sequence[str]
    ) -> Classification:
        instructions = (
            f"{system_prompt}\n\n"
            'Answer with a JSON object: {"choice": <one of '
            f"{json.dumps(list(choices))}>, \"reasoning\": <short explanation>}}."
        )
        output = self.structured.invoke(
            [SystemMessage(content=instructions), HumanMessage(content=user_prompt)]
        )
        parsed = output.get("parsed")
        if output.get("parsing_error") is not None or parsed is None:
            raw = output.get("raw")
            text = message_text(raw) if raw is not None else ""
            raise ValueError(f"Classifier returned invalid JSON: {text[:200]}")
        return parsed


def _constrain(result: Classification, choices: Sequence[str]) -> Classification:
    if result.choice in choices:
        return result
    logger.warning("Classifier chose %r, not one of %s; ending", result.choice, list(choices))
    return Classification(choice=END, reasoning=result.reasoning)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def selector_prompt(categories: Sequence[str]) -> str:
    lines = "\n".join(
        f"- {name}: {mcp_catalog.get_category_description(name)}" for name in categories
    )
    return (
        "You are a category selector for Starknet blockchain operations.\n\n"
        f"Available categories:\n{lines}\n\n"
        "Interpret every request in the Starknet context. Pick the single category "
        f'that best matches the request. Choose "{END}" when the request is unrelated '
        "to Starknet or none of the categories can handle it."
    )


def category_prompt(category: str, servers: Sequence[str]) -> str:
    lines = "\n".join(f"- {name}: {mcp_catalog.get_mcp_description(name)}" for name in servers)
    return (
        f'You are a router for the "{category}" category.\n'
        f"Description: {mcp_catalog.get_category_description(category)}\n\n"
        f"Available servers in this category:\n{lines}\n\n"
        f'Pick the server that can handle the request, or "{END}" if none can '
        "or the original request has already been completed."
    )


def specialist_prompt(info: mcp_catalog.McpServerInfo) -> str:
    tools = "\n".join(f"  - {tool}" for tool in info.tools)
    return (
        f"You are a specialized agent for {info.name} on Starknet.\n\n"
        f"{info.description}\n\n"
        f"Expertise: {info.expertise}\n\n"
        f"Available tools:\n{tools}\n\n"
        "Select the right tool, make sure every required parameter is present, "
        "and explain tool errors clearly. Summarize tool results in plain language "
        "instead of returning raw JSON, and include transaction hashes when there are any."
    )


def _history(messages: Sequence[BaseMessage]) -> str:
    lines = []
    for idx, message in enumerate(messages):
        role = message.name or ("user" if idx == 0 else "assistant")
        lines.append(f"[{role}]: {message_text(message)[:HISTORY_SNIPPET]}")
    return "\n\n".join(lines)


# ---------------------------------------------------------------------------
# Graph nodes
# ---------------------------------------------------------------------------


def make_selector_node(
    classify: Classifier,
    categories: Callable[[], list[str]] = mcp_catalog.get_categories,
) -> Callable[[RoutingState], Awaitable[dict[str, Any]]]:
    async def selector(state: RoutingState) -> dict[str, Any]:
        user_input = message_text(state["messages"][-1])
        available = categories()
        choices = [*available, END]
        result = _constrain(
            await asyncio.to_thread(
                classify,
                selector_prompt(available),
                f'User request: "{user_input}"\n\nWhich category should handle this request?',
                choices,
            ),
            choices,
        )
        logger.info("Selector chose %s: %s", result.choice, result.reasoning)

        update: dict[str, Any] = {
            "next": result.choice,
            "routing_info": _routing_info(result.reasoning),
        }
        if result.choice == END:
            update["messages"] = [
                AIMessage(
                    content=(
                        "I couldn't find an appropriate category to handle this request: "
                        f'"{user_input}"\n\nPlease try rephrasing your request.'
                    ),
                    name="selector-error",
                )
            ]
        return update

    return selector


def make_category_node(
    classify: Classifier,
    servers_for: Callable[[str], list[str]] = mcp_catalog.get_mcps_by_category,
) -> Callable[[RoutingState], Awaitable[dict[str, Any]]]:
    async def category(state: RoutingState) -> dict[str, Any]:
        name = state["next"]
        messages = state["messages"]
        user_input = message_text(messages[-1])
        servers = servers_for(name)
        choices = [*servers, END]
        user_prompt = (
            f"Conversation history:\n{_history(messages)}\n\n"
            f'Original user request: "{message_text(messages[0])}"\n\n'
            f'Current message: "{user_input}"'
        )
        result = _constrain(
            await asyncio.to_thread(classify, category_prompt(name, servers), user_prompt, choices),
            choices,
        )
        logger.info("Category %s chose %s: %s", name, result.choice, result.reasoning)

        update: dict[str, Any] = {
            "next": result.choice,
            "routing_info": _routing_info(result.reasoning),
        }
        # Only a first-turn dead end needs an explanation for the user
        if result.choice == END and len(messages) == 1:
            update["messages"] = [
                AIMessage(
                    content=(
                        f'I couldn\'t find an appropriate server in the "{name}" category '
                        f'to handle this request: "{user_input}"\n\nPlease try rephrasing your request.'
                    ),
                    name="category-error",
                )
            ]
        return update

    return category


def make_specialized_node(
    run_specialist: SpecialistRunner,
) -> Callable[[RoutingState], Awaitable[dict[str, Any]]]:
    async def specialized(state: RoutingState) -> dict[str, Any]:
        server = state["next"]
        logger.info("Specialized node running %s", server)
        answer = await run_specialist(
            server, state["messages"], dict(state.get("mcp_environment") or {})
        )
        return {"messages": [AIMessage(content=answer, name=server)]}

    return specialized


# ---------------------------------------------------------------------------
# Specialist: model + MCP tools
# ---------------------------------------------------------------------------


def _tool_text(result: Any) -> str:
    return "\n".join(
        getattr(item, "text", "") for item in result.content if getattr(item, "text", None)
    )


def mcp_tool_to_langchain(session: ClientSession, tool: Any) -> StructuredTool:
    """Wrap one tool of an open MCP session as a LangChain tool."""

    async def call(**arguments: Any) -> str:
        result = await session.call_tool(tool.name, arguments)
        return _tool_text(result)

    return StructuredTool.from_function(
        coroutine=call,
        name=tool.name,
        description=tool.description or tool.name,
        args_schema=tool.inputSchema,
    )


async def load_session_tools(session: ClientSession) -> list[StructuredTool]:
    listed = await session.list_tools()
    return [mcp_tool_to_langchain(session, tool) for tool in listed.tools]


@asynccontextmanager
async def stdio_session(server: str, environment: dict) -> AsyncIterator[ClientSession]:
    """Launch a catalog server as a subprocess and open an MCP session to it."""
    config = mcp_catalog.get_mcp_client_config(server, environment)
    params = StdioServerParameters(command=config.command, args=config.args, env=config.env)
    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            yield session


def build_tool_agent(
    model: BaseChatModel, tools: Sequence[StructuredTool], max_rounds: int = MAX_TOOL_ROUNDS
) -> Any:
    """Model node and ToolNode in a loop until the model stops calling tools."""
    bound = model.bind_tools(list(tools))

    async def agent(state: MessagesState) -> dict[str, Any]:
        reply = await bound.ainvoke(state["messages"])
        rounds = sum(
            1 for m in state["messages"] if isinstance(m, AIMessage) and m.tool_calls
        )
        if reply.tool_calls and rounds >= max_rounds:
            raise RuntimeError(f"No final answer after {max_rounds} tool rounds")
        return {"messages": [reply]}

    graph = StateGraph(MessagesState)
    graph.add_node("agent", agent)
    graph.add_node("tools", ToolNode(list(tools)))
    graph.add_edge(START, "agent")
    graph.add_conditional_edges("agent", tools_condition)
    graph.add_edge("tools", "agent")
    return graph.compile()


class McpSpecialist:
    """Start a catalog server and let the model drive its tools."""

    def __init__(
        self,
        model: Optional[BaseChatModel] = None,
        max_rounds: int = MAX_TOOL_ROUNDS,
        connect: Callable[[str, dict], Any] = stdio_session,
    ) -> None:
        self.model = model
        self.max_rounds = max_rounds
        self.connect = connect

    async def __call__(
        self, server: str, messages: Sequence[BaseMessage], environment: dict
    ) -> str:
        info = mcp_catalog.get_mcp_info(server)
        if info is None:
            raise ConfigError(f"MCP configuration not found for {server}")
        model = self.model or build_chat_model(environment)

        async with self.connect(server, environment) as session:
            tools = await load_session_tools(session)
            logger.info(
                "Loaded %d tools from %s: %s",
                len(tools),
                server,
                ", ".join(tool.name for tool in tools),
            )
            agent = build_tool_agent(model, tools, self.max_rounds)
            # One model step and one tool step per round, then the answer.
            state = await agent.ainvoke(
                {"messages": [SystemMessage(content=specialist_prompt(info)), *messages]},
                config={"recursion_limit": 2 * self.max_rounds + 3},
            )
        return message_text(state["messages"][-1])


# ---------------------------------------------------------------------------
# ask_starknet
# ---------------------------------------------------------------------------


def mcp_environment_from_os() -> dict[str, str]:
    """Variables forwarded to the model and to the servers it launches."""
    names = set(MODEL_ENV)
    for info in mcp_catalog.MCP_SERVERS.values():
        names.update(info.required_env)
        names.update(info.optional_env)
    return {name: os.environ[name] for name in sorted(names) if os.environ.get(name)}


def build_default_graph(environment: Optional[dict[str, str]] = None) -> Any:
    model = build_chat_model(environment)
    classify = ChatModelClassifier(model)
    return build_routing_graph(
        make_selector_node(classify),
        make_category_node(classify),
        make_specialized_node(McpSpecialist(model)),
    )


@dataclass(frozen=True)
class AskEnv:
    graph: Any
    mcp_environment: dict[str, str]


@tool_action
def ask_starknet(env: AskEnv, params: AskStarknetParams) -> dict[str, Any]:
    state = asyncio.run(
        env.graph.ainvoke(initial_state(params.user_input, env.mcp_environment))
    )
    messages = state.get("messages") or []
    if len(messages) < 2:
        raise RuntimeError("The request was routed but produced no answer")
    last = messages[-1]
    return {
        "message": message_text(last),
        "agent": last.name,
        "routingInfo": state.get("routing_info") or {},
    }
