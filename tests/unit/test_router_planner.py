"""Tests for request routing, plan generation and the agent registry."""

import pytest

from agentura.agents import AgentKind, build_agent_registry
from agentura.components.planner import Planner
from agentura.components.router import FALLBACK_KIND, Router
from agentura.session.models import FileAttachment, Message, ReflexionEntry, Role
from agentura.utils.error_handler import ModelInvocationError, PlanningError
from tests.support import plan_json, route_json


class TestAgentRegistry:
    """Agent roles"""

    def test_internal_kinds_are_not_routable(self, agent_registry):
        routable = agent_registry.user_facing_kinds()
        assert AgentKind.PLANNER in routable
        for kind in (AgentKind.ROUTER, AgentKind.SUPERVISOR, AgentKind.CRITIQUE, AgentKind.RETRY, AgentKind.EMBEDDER):
            assert kind not in routable

    def test_planner_cannot_be_a_plan_step(self, agent_registry):
        steps = agent_registry.plan_step_kinds()
        assert AgentKind.PLANNER not in steps
        assert AgentKind.CODE in steps

    def test_yaml_overrides_change_slot_and_temperature(self, tmp_path):
        path = tmp_path / "agents.yaml"
        path.write_text("agents:\n  Chat:\n    model_slot: reason\n    temperature: 0.1\n  Nonsense: {}\n")
        registry = build_agent_registry(path)
        chat = registry.get(AgentKind.CHAT)
        assert chat.model_slot == "reason"
        assert chat.config.temperature == 0.1

    def test_unknown_model_slot_is_rejected(self, tmp_path):
        path = tmp_path / "agents.yaml"
        path.write_text("agents:\n  Chat:\n    model_slot: quantum\n")
        with pytest.raises(ValueError):
            build_agent_registry(path)

    def test_lenient_kind_parsing(self):
        assert AgentKind.parse(" research ") is AgentKind.RESEARCH
        assert AgentKind.parse("DATA_ANALYST") is AgentKind.DATA_ANALYST
        assert AgentKind.parse("Wizard") is None
        assert AgentKind.parse(None) is None


class TestRouter:
    """Routing decisions"""

    @pytest.mark.asyncio
    async def test_model_route_is_used(self, gateway, service, agent_registry):
        service.add("Router", route_json("Research", complexity=14))
        result = await Router(gateway, agent_registry).classify("latest news on fusion")

        assert result.kind is AgentKind.RESEARCH
        assert result.complexity == 10
        assert not result.fell_back

    @pytest.mark.asyncio
    async def test_image_attachment_goes_to_vision_without_a_call(self, gateway, service, agent_registry):
        image = FileAttachment(name="cat.png", mime_type="image/png", content="aGk=")
        assert await Router(gateway, agent_registry).route("what is this?", file=image) is AgentKind.VISION
        assert service.calls("Router") == []

    @pytest.mark.asyncio
    async def test_internal_route_falls_back(self, gateway, service, agent_registry):
        service.add("Router", route_json("Supervisor"))
        result = await Router(gateway, agent_registry).classify("hello")
        assert result.kind is FALLBACK_KIND
        assert result.fell_back

    @pytest.mark.asyncio
    async def test_failed_call_falls_back(self, gateway, service, agent_registry):
        service.add("Router", ModelInvocationError("boom"))
        assert await Router(gateway, agent_registry).route("hello") is FALLBACK_KIND

    @pytest.mark.asyncio
    async def test_malformed_reply_falls_back(self, gateway, service, agent_registry):
        service.add("Router", "Research, probably")
        assert await Router(gateway, agent_registry).route("hello") is FALLBACK_KIND

    @pytest.mark.asyncio
    async def test_recent_history_is_included(self, gateway, service, agent_registry):
        service.add("Router", route_json("Chat"))
        history = [
            Message(role=Role.USER, content="Tell me about Rust"),
            Message(role=Role.ASSISTANT, agent=AgentKind.RESEARCH, content="Rust is a language."),
        ]
        await Router(gateway, agent_registry).route("and its history?", history=history)

        text = service.calls("Router")[0].turns[0].text
        assert "[assistant/Research] Rust is a language." in text
        assert text.endswith("and its history?")

    @pytest.mark.asyncio
    async def test_routes_are_rendered_into_the_instruction(self, gateway, service, agent_registry):
        await Router(gateway, agent_registry).route("hi")
        instruction = service.calls("Router")[0].system_instruction
        assert "- Code:" in instruction
        assert "- Supervisor:" not in instruction


class TestPlanner:
    """Plan generation"""

    @pytest.mark.asyncio
    async def test_plan_steps_are_bound_to_kinds(self, gateway, service, agent_registry):
        service.add(
            "Planner",
            plan_json(
                {"agent": "Research", "output_key": "facts"},
                {"agent": "code", "dependencies": [1, 1]},
            ),
        )
        plan = await Planner(gateway).plan("compare sorting algorithms", agent_registry.plan_step_kinds())

        assert [step.agent for step in plan.steps] == [AgentKind.RESEARCH, AgentKind.CODE]
        assert plan.steps[0].output_key == "facts"
        assert plan.steps[1].dependencies == [1]
        assert plan.id.startswith("plan-")

    @pytest.mark.asyncio
    async def test_bare_step_list_is_accepted(self, gateway, service, agent_registry):
        service.add("Planner", plan_json({}, {})["steps"])
        plan = await Planner(gateway).plan("two things", agent_registry.plan_step_kinds())
        assert len(plan.steps) == 2

    @pytest.mark.asyncio
    async def test_unavailable_agent_is_rejected(self, gateway, service, agent_registry):
        service.add("Planner", plan_json({"agent": "Supervisor"}))
        with pytest.raises(PlanningError) as excinfo:
            await Planner(gateway).plan("x", agent_registry.plan_step_kinds())
        assert "unknown agent" in excinfo.value.user_message

    @pytest.mark.asyncio
    async def test_empty_plan_is_rejected(self, gateway, service, agent_registry):
        service.add("Planner", {"steps": []})
        with pytest.raises(PlanningError):
            await Planner(gateway).plan("x", agent_registry.plan_step_kinds())

    @pytest.mark.asyncio
    async def test_duplicate_step_ids_are_rejected(self, gateway, service, agent_registry):
        service.add("Planner", plan_json({"step_id": 1}, {"step_id": 1}))
        with pytest.raises(PlanningError) as excinfo:
            await Planner(gateway).plan("x", agent_registry.plan_step_kinds())
        assert "duplicate" in excinfo.value.user_message

    @pytest.mark.asyncio
    async def test_model_failure_becomes_planning_error(self, gateway, service, agent_registry):
        service.add("Planner", ValueError("401 invalid_api_key"))
        with pytest.raises(PlanningError) as excinfo:
            await Planner(gateway).plan("x", agent_registry.plan_step_kinds())
        assert "Authentication" in excinfo.value.user_message

    @pytest.mark.asyncio
    async def test_past_lessons_reach_the_instruction(self, gateway, service, agent_registry):
        service.add("Planner", plan_json({}))
        lesson = ReflexionEntry(
            embedding=[0.0],
            prompt="plot the data",
            failed_output="NameError",
            critique="forgot to import numpy",
            fix="import numpy first",
        )
        await Planner(gateway).plan("plot more data", agent_registry.plan_step_kinds(), [lesson])

        instruction = service.calls("Planner")[0].system_instruction
        assert "forgot to import numpy" in instruction
        assert "import numpy first" in instruction
        assert "Research" in instruction
