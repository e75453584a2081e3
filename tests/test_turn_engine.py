import asyncio
import time
import unittest

from kalina_assistant.provider import FunctionCall
from kalina_assistant.tool_registry import ToolRegistry
from kalina_assistant.tools.analytics_data_tool import GetAnalyticsDataTool
from kalina_assistant.turn_engine import TurnEngine
from tests.fakes import FakeAnalyticsProvider, ScriptedProvider


def _engine(analytics: FakeAnalyticsProvider) -> TurnEngine:
    return TurnEngine(
        model="test-model",
        router_prompt="route",
        answer_prompt="answer",
        tool_registry=ToolRegistry([GetAnalyticsDataTool(analytics)]),
    )


def _call(section: str, call_id: str) -> FunctionCall:
    return FunctionCall(name="get_analytics_data", id=call_id, args={"section": section})


class ExecuteToolsTests(unittest.TestCase):
    def test_results_keep_call_order_and_ids(self) -> None:
        engine = _engine(FakeAnalyticsProvider())
        calls = [_call("news_analytics", "c1"), _call("user_statistics", "c2")]

        results = asyncio.run(engine.execute_tools(calls))

        self.assertEqual(["c1", "c2"], [r["functionResponse"]["id"] for r in results])
        self.assertEqual(
            ["get_analytics_data", "get_analytics_data"],
            [r["functionResponse"]["name"] for r in results],
        )
        self.assertEqual(48, results[0]["functionResponse"]["response"]["result"]["totalRuns"])
        self.assertEqual(910, results[1]["functionResponse"]["response"]["result"]["totalLtmFacts"])

    def test_calls_run_concurrently(self) -> None:
        engine = _engine(FakeAnalyticsProvider(delay=0.2))
        calls = [_call(s, f"c{i}") for i, s in enumerate(("news_analytics", "agent_analytics", "user_statistics"))]

        started = time.monotonic()
        asyncio.run(engine.execute_tools(calls))
        elapsed = time.monotonic() - started

        self.assertLess(elapsed, 0.5)

    def test_one_failure_does_not_affect_the_others(self) -> None:
        engine = _engine(FakeAnalyticsProvider(fail_sections=("agent_analytics",)))
        calls = [_call("news_analytics", "c1"), _call("agent_analytics", "c2"), _call("bogus", "c3")]

        results = asyncio.run(engine.execute_tools(calls))
        payloads = [r["functionResponse"]["response"]["result"] for r in results]

        self.assertEqual(48, payloads[0]["totalRuns"])
        self.assertEqual(
            {"error": 'Error executing tool "get_analytics_data": agent_analytics backend down'},
            payloads[1],
        )
        self.assertEqual({"error": "Invalid analytics section: bogus"}, payloads[2])


class RouteAndAnswerTests(unittest.TestCase):
    def test_route_declares_tools(self) -> None:
        engine = _engine(FakeAnalyticsProvider())
        provider = ScriptedProvider([], text="Hello!")
        contents = [{"role": "user", "parts": [{"text": "hi"}]}]

        response = asyncio.run(engine.route(provider, contents))

        self.assertEqual("Hello!", response.text)
        call = provider.generate_calls[0]
        self.assertEqual("test-model", call["model"])
        self.assertEqual(["get_analytics_data"], [t["name"] for t in call["tools"]])
        self.assertEqual(contents, call["contents"])

    def test_answer_contents_appends_call_and_response_turns(self) -> None:
        history = [{"role": "user", "parts": [{"text": "How many users?"}]}]
        calls = [_call("user_statistics", "c1")]
        results = [{"functionResponse": {"name": "get_analytics_data", "id": "c1", "response": {"result": {}}}}]

        contents = TurnEngine.answer_contents(history, calls, results)

        self.assertEqual(3, len(contents))
        self.assertEqual("model", contents[1]["role"])
        self.assertEqual("c1", contents[1]["parts"][0]["functionCall"]["id"])
        self.assertEqual({"role": "user", "parts": results}, contents[2])

    def test_stream_answer_uses_answer_prompt(self) -> None:
        engine = _engine(FakeAnalyticsProvider())
        provider = ScriptedProvider([], stream_chunks=["a", "b"])

        async def collect() -> list[str]:
            return [c async for c in engine.stream_answer(provider, [])]

        self.assertEqual(["a", "b"], asyncio.run(collect()))
        self.assertEqual(1, len(provider.stream_calls))
        self.assertIsNone(provider.stream_calls[0]["tools"])

    def test_stream_answer_declares_tools_for_replayed_calls(self) -> None:
        engine = _engine(FakeAnalyticsProvider())
        provider = ScriptedProvider([], stream_chunks=["done"])
        calls = [_call("user_statistics", "c1")]
        results = [{"functionResponse": {"name": "get_analytics_data", "id": "c1", "response": {"result": {}}}}]
        contents = TurnEngine.answer_contents([{"role": "user", "parts": [{"text": "users?"}]}], calls, results)

        async def collect() -> list[str]:
            return [c async for c in engine.stream_answer(provider, contents)]

        asyncio.run(collect())

        self.assertEqual(["get_analytics_data"], [t["name"] for t in provider.stream_calls[0]["tools"]])


if __name__ == "__main__":
    unittest.main()
