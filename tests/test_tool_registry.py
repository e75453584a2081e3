import asyncio
import unittest

from kalina_assistant.analytics import ANALYTICS_SECTIONS
from kalina_assistant.tool_registry import ToolRegistry, get_all
from kalina_assistant.tools.analytics_data_tool import GetAnalyticsDataTool
from tests.fakes import FakeAnalyticsProvider


class GetAllTests(unittest.TestCase):
    def test_analytics_tool_requires_a_provider(self) -> None:
        self.assertEqual([], get_all())
        tools = get_all(FakeAnalyticsProvider())
        self.assertEqual(["get_analytics_data"], [t.name for t in tools])


class ToolRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = FakeAnalyticsProvider()
        self.registry = ToolRegistry([GetAnalyticsDataTool(self.provider)])

    def test_declares_section_enum(self) -> None:
        declarations = self.registry.declare_tools()
        self.assertEqual(1, len(declarations))
        decl = declarations[0]
        self.assertEqual("get_analytics_data", decl["name"])
        self.assertTrue(decl["description"])
        schema = decl["input_schema"]
        self.assertEqual(["section"], schema["required"])
        self.assertEqual(list(ANALYTICS_SECTIONS), schema["properties"]["section"]["enum"])

    def test_unknown_tool_returns_error_value(self) -> None:
        result = asyncio.run(self.registry.dispatch("delete_everything", {}))
        self.assertEqual({"error": "Unknown tool called: delete_everything"}, result)
        self.assertEqual([], self.provider.calls)

    def test_invalid_section_returns_error_value(self) -> None:
        result = asyncio.run(self.registry.dispatch("get_analytics_data", {"section": "revenue"}))
        self.assertEqual({"error": "Invalid analytics section: revenue"}, result)
        self.assertEqual([], self.provider.calls)

    def test_missing_section_returns_error_value(self) -> None:
        result = asyncio.run(self.registry.dispatch("get_analytics_data", None))
        self.assertEqual({"error": "Invalid analytics section: "}, result)

    def test_user_statistics_section(self) -> None:
        result = asyncio.run(self.registry.dispatch("get_analytics_data", {"section": "user_statistics"}))
        self.assertEqual({"totalUsers": 1234, "totalConversations": 5678, "totalLtmFacts": 910}, result)
        self.assertEqual(["user_statistics"], self.provider.calls)

    def test_every_section_dispatches_to_its_fetch(self) -> None:
        for section in ANALYTICS_SECTIONS:
            asyncio.run(self.registry.dispatch("get_analytics_data", {"section": section}))
        self.assertEqual(list(ANALYTICS_SECTIONS), self.provider.calls)

    def test_provider_errors_propagate_from_dispatch(self) -> None:
        registry = ToolRegistry([GetAnalyticsDataTool(FakeAnalyticsProvider(fail_sections=("news_analytics",)))])
        with self.assertRaises(RuntimeError):
            asyncio.run(registry.dispatch("get_analytics_data", {"section": "news_analytics"}))


if __name__ == "__main__":
    unittest.main()
