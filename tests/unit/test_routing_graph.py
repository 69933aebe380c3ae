import asyncio
import sys
from pathlib import Path

from langchain_core.messages import AIMessage, HumanMessage
from langgraph.graph import END

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import ask_starknet_mcp_server as ask_server  # noqa: E402
import routing_agents  # noqa: E402
import routing_graph  # noqa: E402
from routing_agents import Classification  # noqa: E402
from tool_registry import dispatch  # noqa: E402
from tool_schemas import AskStarknetParams  # noqa: E402


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    def __init__(self):
        self.order = []

    def node(self, name, update):
        def run(state):
            self.order.append(name)
            return update

        return run


class StubClassifier:
    def __init__(self, *choices):
        self.choices = list(choices)
        self.prompts = []

    def __call__(self, system_prompt, user_prompt, choices):
        self.prompts.append((system_prompt, user_prompt, list(choices)))
        return Classification(choice=self.choices.pop(0), reasoning="because")


def _stub_graph(selector_choice, category_choice, answer="done"):
    runs = []

    async def specialist(server, messages, environment):
        runs.append((server, [m.content for m in messages], environment))
        return answer

    graph = routing_graph.build_routing_graph(
        routing_agents.make_selector_node(StubClassifier(selector_choice)),
        routing_agents.make_category_node(StubClassifier(category_choice)),
        routing_agents.make_specialized_node(specialist),
    )
    return graph, runs


# ---------------------------------------------------------------------------
# Graph wiring
# ---------------------------------------------------------------------------


def test_edge_functions():
    assert routing_graph.route_after_selector({"next": "tokens"}) == "category"
    assert routing_graph.route_after_selector({"next": END}) == END
    assert routing_graph.route_after_selector({}) == END
    assert routing_graph.route_after_category({"next": "erc20"}) == "specialized"
    assert routing_graph.route_after_category({"next": END}) == END


def test_end_at_selector_skips_later_stages():
    rec = Recorder()
    graph = routing_graph.build_routing_graph(
        rec.node("selector", {"next": END}),
        rec.node("category", {"next": "erc20"}),
        rec.node("specialized", {"routing_info": {}}),
    )
    graph.invoke(routing_graph.initial_state("hello"))
    assert rec.order == ["selector"]


def test_end_at_category_skips_specialized():
    rec = Recorder()
    graph = routing_graph.build_routing_graph(
        rec.node("selector", {"next": "tokens"}),
        rec.node("category", {"next": END}),
        rec.node("specialized", {"routing_info": {}}),
    )
    graph.invoke(routing_graph.initial_state("hello"))
    assert rec.order == ["selector", "category"]


def test_full_path_runs_each_stage_once_in_order():
    rec = Recorder()
    graph = routing_graph.build_routing_graph(
        rec.node("selector", {"next": "tokens"}),
        rec.node("category", {"next": "erc20"}),
        rec.node("specialized", {"messages": [AIMessage(content="ok", name="erc20")]}),
    )
    state = graph.invoke(routing_graph.initial_state("balance of my wallet"))

    assert rec.order == ["selector", "category", "specialized"]
    assert [m.content for m in state["messages"]] == ["balance of my wallet", "ok"]


def test_routing_info_is_shallow_merged():
    rec = Recorder()
    graph = routing_graph.build_routing_graph(
        rec.node("selector", {"next": "tokens", "routing_info": {"reasoning": "a", "timestamp": "t1"}}),
        rec.node("category", {"next": "erc20", "routing_info": {"reasoning": "b"}}),
        rec.node("specialized", {"routing_info": {}}),
    )
    state = graph.invoke(routing_graph.initial_state("x"))
    assert state["routing_info"] == {"reasoning": "b", "timestamp": "t1"}


def test_merge_routing_info_handles_missing_sides():
    assert routing_graph.merge_routing_info(None, {"a": 1}) == {"a": 1}
    assert routing_graph.merge_routing_info({"a": 1}, None) == {"a": 1}


def test_message_text_flattens_blocks():
    message = AIMessage(content=[{"type": "text", "text": "a"}, "b"])
    assert routing_graph.message_text(message) == "ab"


# ---------------------------------------------------------------------------
# Agent nodes
# ---------------------------------------------------------------------------


def test_selector_end_adds_explanation():
    node = routing_agents.make_selector_node(StubClassifier(END))
    update = asyncio.run(node({"messages": [HumanMessage(content="what's the weather")]}))

    assert update["next"] == END
    assert update["messages"][0].name == "selector-error"
    assert update["routing_info"]["reasoning"] == "because"
    assert "timestamp" in update["routing_info"]


def test_selector_offers_categories_and_end():
    classify = StubClassifier("trading")
    node = routing_agents.make_selector_node(classify)
    update = asyncio.run(node({"messages": [HumanMessage(content="swap 1 ETH")]}))

    assert update["next"] == "trading"
    assert "messages" not in update
    assert classify.prompts[0][2] == ["tokens", "trading", "blockchain", END]


def test_selector_unknown_choice_ends():
    node = routing_agents.make_selector_node(StubClassifier("nft"))
    update = asyncio.run(node({"messages": [HumanMessage(content="mint")]}))
    assert update["next"] == END


def test_category_picks_server():
    classify = StubClassifier("erc20")
    node = routing_agents.make_category_node(classify)
    update = asyncio.run(
        node({"next": "tokens", "messages": [HumanMessage(content="my STRK balance")]})
    )
    assert update["next"] == "erc20"
    assert classify.prompts[0][2] == ["erc20", END]


def test_category_end_on_first_turn_explains():
    node = routing_agents.make_category_node(StubClassifier(END))
    update = asyncio.run(node({"next": "trading", "messages": [HumanMessage(content="x")]}))
    assert update["next"] == END
    assert update["messages"][0].name == "category-error"


def test_full_agent_graph():
    graph, runs = _stub_graph("tokens", "erc20", answer="You hold 3 STRK.")
    state = asyncio.run(
        graph.ainvoke(routing_graph.initial_state("my STRK balance", {"STARKNET_RPC_URL": "http://n"}))
    )

    last = state["messages"][-1]
    assert last.content == "You hold 3 STRK."
    assert last.name == "erc20"
    assert runs == [("erc20", ["my STRK balance"], {"STARKNET_RPC_URL": "http://n"})]


def test_specialist_not_called_when_selector_ends():
    graph, runs = _stub_graph(END, "erc20")
    state = asyncio.run(graph.ainvoke(routing_graph.initial_state("hi")))
    assert runs == []
    assert state["messages"][-1].name == "selector-error"


# ---------------------------------------------------------------------------
# ask_starknet
# ---------------------------------------------------------------------------


def test_ask_starknet_action():
    graph, _ = _stub_graph("blockchain", "starknet-rpc", answer="Block 42")
    env = routing_agents.AskEnv(graph=graph, mcp_environment={})

    result = routing_agents.ask_starknet(env, AskStarknetParams(user_input="latest block?"))

    assert result.status == "success"
    assert result.data["message"] == "Block 42"
    assert result.data["agent"] == "starknet-rpc"
    assert result.data["routingInfo"]["reasoning"] == "because"


def test_ask_starknet_tool_validates_input():
    graph, runs = _stub_graph("tokens", "erc20")
    registry = ask_server.build_tools(graph=graph)

    result = asyncio.run(dispatch(registry, "ask_starknet", {"userInput": ""}))
    assert result.status == "failure"
    assert runs == []


def test_ask_starknet_specialist_error_is_failure():
    async def broken(server, messages, environment):
        raise RuntimeError("server crashed")

    graph = routing_graph.build_routing_graph(
        routing_agents.make_selector_node(StubClassifier("tokens")),
        routing_agents.make_category_node(StubClassifier("erc20")),
        routing_agents.make_specialized_node(broken),
    )
    registry = ask_server.build_tools(graph=graph)
    result = asyncio.run(dispatch(registry, "ask_starknet", {"userInput": "balance"}))
    assert result.to_dict() == {"status": "failure", "error": "server crashed"}


def test_mcp_environment_from_os(monkeypatch):
    monkeypatch.setenv("STARKNET_RPC_URL", "http://node")
    monkeypatch.setenv("UNRELATED_SECRET", "x")
    env = routing_agents.mcp_environment_from_os()
    assert env["STARKNET_RPC_URL"] == "http://node"
    assert "UNRELATED_SECRET" not in env
