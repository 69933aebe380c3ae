"""
Three-stage routing graph: selector -> category -> specialized.

The selector picks a category, the category node picks a server inside it,
and the specialized node runs that server's tools. Either of the first two
stages can stop the run by setting ``next`` to ``END``.
"""

from typing import Annotated, Any, Awaitable, Callable, Optional, TypedDict, Union

from langchain_core.messages import AnyMessage, BaseMessage, HumanMessage
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages

SELECTOR = "selector"
CATEGORY = "category"
SPECIALIZED = "specialized"


def merge_routing_info(
    left: Optional[dict[str, Any]], right: Optional[dict[str, Any]]
) -> dict[str, Any]:
    """Shallow merge; keys from the newer update win."""
    return {**(left or {}), **(right or {})}


class RoutingState(TypedDict, total=False):
    messages: Annotated[list[AnyMessage], add_messages]
    # Category name after the selector, server name after the category node
    next: str
    mcp_environment: dict[str, str]
    routing_info: Annotated[dict[str, Any], merge_routing_info]


NodeResult = Union[dict[str, Any], Awaitable[dict[str, Any]]]
Node = Callable[[RoutingState], NodeResult]


def route_after_selector(state: RoutingState) -> str:
    return CATEGORY if state.get("next", END) != END else END


def route_after_category(state: RoutingState) -> str:
    return SPECIALIZED if state.get("next", END) != END else END


def build_routing_graph(selector: Node, category: Node, specialized: Node) -> Any:
    """Wire and compile the graph around the three stage callables."""
    graph = StateGraph(RoutingState)
    graph.add_node(SELECTOR, selector)
    graph.add_node(CATEGORY, category)
    graph.add_node(SPECIALIZED, specialized)

    graph.add_edge(START, SELECTOR)
    graph.add_conditional_edges(
        SELECTOR, route_after_selector, {CATEGORY: CATEGORY, END: END}
    )
    graph.add_conditional_edges(
        CATEGORY, route_after_category, {SPECIALIZED: SPECIALIZED, END: END}
    )
    graph.add_edge(SPECIALIZED, END)
    return graph.compile()


def initial_state(
    user_input: str, mcp_environment: Optional[dict[str, str]] = None
) -> RoutingState:
    return {
        "messages": [HumanMessage(content=user_input)],
        "next": END,
        "mcp_environment": dict(mcp_environment or {}),
        "routing_info": {},
    }


def message_text(message: BaseMessage) -> str:
    """Flatten message content (string or content blocks) to text."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict):
            parts.append(str(block.get("text") or block.get("content") or ""))
    return "".join(parts)
