"""Tests for the step executor and the meta-agent components."""

import pytest

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.components.agent_runner import AgentRunner
from agentura.components.critic import Critic
from agentura.components.guard import ConstitutionGuard
from agentura.components.reflexion import PromptRefiner, clean_prompt
from agentura.components.step_executor import StepExecutor, build_step_prompt, substitute_outputs
from agentura.components.supervisor import Supervisor, parse_decision
from agentura.session import GroundingSource, Message, Plan, PlanStep, Role, SessionStore, StepStatus
from agentura.tools.code_executor import ExecutionResult
from agentura.tools.runtime import ToolRuntime
from agentura.utils.error_handler import (
    PlanningError,
    ReflexionError,
    StructuredOutputError,
    SupervisorDecisionError,
    with_error_boundary,
)
from tests.support import FakeCodeExecutor, Reply, critique_json, tool_call


@pytest.fixture
def runner(gateway, code_executor):
    return AgentRunner(gateway, ToolRuntime(code_executor=code_executor))


def _plan_in_store(*steps):
    store = SessionStore()
    plan = Plan(steps=list(steps))
    store.append_message(Message(role=Role.ASSISTANT, plan=plan, is_loading=True))
    return store, plan


class TestStepPrompt:
    """Step prompt assembly"""

    def test_output_references_are_substituted(self):
        assert substitute_outputs("Summarise {facts} for {who}", {"facts": "F"}) == "Summarise F for {who}"

    def test_prompt_carries_goal_status_and_dependency_outputs(self):
        plan = Plan(
            steps=[
                PlanStep(
                    step_id=1,
                    description="Gather facts",
                    agent=AgentKind.RESEARCH,
                    output_key="facts",
                    status=StepStatus.COMPLETED,
                    result="Paris is the capital.",
                ),
                PlanStep(step_id=2, description="Write a poem about {facts}", agent=AgentKind.CREATIVE, dependencies=[1]),
            ]
        )
        prompt = build_step_prompt(plan.steps[1], plan, "A poem about France")

        assert "Overall goal: A poem about France" in prompt
        assert "Step 1 [completed] (Research)" in prompt
        assert "Output of step 1 (facts):\nParis is the capital." in prompt
        assert "Step description: Write a poem about Paris is the capital." in prompt
        assert "executing step 2 only" in prompt


class TestStepExecutor:
    """Single-step execution"""

    @pytest.mark.asyncio
    async def test_streamed_text_is_published_then_committed(self, runner, service):
        store, plan = _plan_in_store(PlanStep(step_id=1, description="Say hi", agent=AgentKind.CHAT))
        service.add("Chat", Reply(chunks=["Hi", " there"]))
        partials = []
        store.subscribe(lambda event: partials.append(event.message.plan.step(1).result) if event.message else None)

        store.begin_steps(plan.id, [1])
        outcome = await StepExecutor(runner, store).execute_step(store.get_plan(plan.id).step(1), store.get_plan(plan.id), "greet")

        assert outcome.ok and outcome.result == "Hi there"
        assert "Hi" in partials
        step = store.get_plan(plan.id).step(1)
        assert step.status is StepStatus.COMPLETED
        assert step.result == "Hi there"

    @pytest.mark.asyncio
    async def test_code_error_fails_the_step(self, gateway, service):
        executor = FakeCodeExecutor(ExecutionResult(stdout="", stderr="NameError: name 'np' is not defined"))
        runner = AgentRunner(gateway, ToolRuntime(code_executor=executor))
        store, plan = _plan_in_store(PlanStep(step_id=1, description="Compute", agent=AgentKind.CODE))
        service.add("Code", Reply(text="Running it.", function_calls=[tool_call("code_interpreter", code="print(np.pi)")]))

        store.begin_steps(plan.id, [1])
        outcome = await StepExecutor(runner, store).execute_step(plan.steps[0], store.get_plan(plan.id), "pi")

        assert outcome.status is StepStatus.FAILED
        assert "NameError" in outcome.result
        assert executor.executed == ["print(np.pi)"]
        assert [call.name for call in outcome.function_calls] == ["code_interpreter"]
        assert store.get_plan(plan.id).step(1).status is StepStatus.FAILED

    @pytest.mark.asyncio
    async def test_tool_output_replaces_the_model_text(self, runner, service, code_executor):
        store, plan = _plan_in_store(PlanStep(step_id=1, description="Compute", agent=AgentKind.CODE))
        service.add("Code", Reply(text="Let me run that.", function_calls=[tool_call("code_interpreter", code="print(6*7)")]))

        store.begin_steps(plan.id, [1])
        outcome = await StepExecutor(runner, store).execute_step(plan.steps[0], store.get_plan(plan.id), "6*7")
        assert outcome.ok
        assert outcome.result == "42"

    @pytest.mark.asyncio
    async def test_model_failure_fails_the_step_without_raising(self, runner, service):
        store, plan = _plan_in_store(PlanStep(step_id=1, description="Say hi", agent=AgentKind.CHAT))
        service.add("Chat", ValueError("401 invalid_api_key"))

        store.begin_steps(plan.id, [1])
        outcome = await StepExecutor(runner, store).execute_step(plan.steps[0], store.get_plan(plan.id), "greet")
        assert outcome.status is StepStatus.FAILED
        assert "Authentication" in outcome.result


class TestAgentRunner:
    """Tool call handling"""

    @pytest.mark.asyncio
    async def test_non_local_tools_are_recorded_only(self, runner, service):
        service.add("Creative", Reply(text="Here is the idea.", function_calls=[tool_call("veo_tool", prompt="sunset")]))
        run = await runner.run(AgentKind.CREATIVE, "make a video")

        assert run.tool_results == []
        assert run.output == "Here is the idea."
        assert run.function_calls[0].name == "veo_tool"

    @pytest.mark.asyncio
    async def test_history_becomes_prior_turns(self, runner, service):
        history = [
            Message(role=Role.USER, content="hi"),
            Message(role=Role.ASSISTANT, content="hello"),
            Message(role=Role.ASSISTANT, content=""),
        ]
        await runner.run(AgentKind.CHAT, "how are you?", history=history)

        turns = service.calls("Chat")[0].turns
        assert [(turn.role, turn.text) for turn in turns] == [
            ("user", "hi"),
            ("assistant", "hello"),
            ("user", "how are you?"),
        ]

    @pytest.mark.asyncio
    async def test_synthesis_uses_chat_without_tools(self, runner, service):
        service.add("Chat", "The program printed 42.")
        text = await runner.synthesize("what is 6*7?", "42")

        request = service.calls("Chat")[0]
        assert text == "The program printed 42."
        assert request.tools == []
        assert "Tool output:\n42" in request.turns[0].text


class TestCritic:
    """Critique scoring"""

    @pytest.mark.asyncio
    async def test_scores_are_clamped(self, gateway, service):
        service.add("Critique", {"scores": {"faithfulness": 9, "coherence": -1, "coverage": "3"}, "critique": "ok"})
        result = await Critic(gateway).critique("goal", "output")

        assert (result.scores.faithfulness, result.scores.coherence, result.scores.coverage) == (5.0, 0.0, 3.0)
        assert result.average == pytest.approx(8 / 3)

    @pytest.mark.asyncio
    async def test_flat_scores_are_accepted(self, gateway, service):
        service.add("Critique", {"faithfulness": 4, "coherence": 4, "coverage": 4})
        assert (await Critic(gateway).critique("goal", "output")).average == pytest.approx(4.0)

    @pytest.mark.asyncio
    async def test_missing_score_is_a_structured_output_error(self, gateway, service):
        service.add("Critique", {"scores": {"faithfulness": 4}})
        with pytest.raises(StructuredOutputError):
            await Critic(gateway).critique("goal", "output")

    @pytest.mark.asyncio
    async def test_sources_are_shown_to_the_critic(self, gateway, service):
        service.add("Critique", critique_json(5))
        await Critic(gateway).critique("goal", "output", [GroundingSource(uri="https://x.example", title="X")])
        assert "- X (https://x.example)" in service.calls("Critique")[0].turns[0].text


class TestPromptRefiner:
    """Prompt refinement"""

    @pytest.mark.parametrize(
        "raw",
        [
            "Import numpy before using it.",
            "```\nImport numpy before using it.\n```",
            "Improved prompt: \"Import numpy before using it.\"",
            "**New Prompt:** 'Import numpy before using it.'",
        ],
    )
    def test_clean_prompt(self, raw):
        assert clean_prompt(raw) == "Import numpy before using it."

    @pytest.mark.asyncio
    async def test_refine_sends_output_and_critique(self, gateway, service):
        service.add("Retry", "Prompt: compute pi with math.pi")
        prompt = await PromptRefiner(gateway).refine("compute pi", "NameError", "np was undefined")

        assert prompt == "compute pi with math.pi"
        text = service.calls("Retry")[0].turns[0].text
        assert "NameError" in text and "np was undefined" in text

    @pytest.mark.asyncio
    async def test_empty_refinement_raises(self, gateway, service):
        service.add("Retry", "```\n```")
        with pytest.raises(ReflexionError):
            await PromptRefiner(gateway).refine("compute pi", "NameError", "bad")


class TestSupervisor:
    """Supervisor decisions"""

    def test_final_aliases(self):
        assert parse_decision({"next_agent": "Done"}).next_agent == FINAL
        assert parse_decision({"next_agent": FINAL}).next_agent == FINAL

    def test_meta_agents_are_accepted(self):
        assert parse_decision({"next_agent": "planner", "reason": "replan"}).next_agent == AgentKind.PLANNER.value
        assert parse_decision({"next_agent": "Critique"}).next_agent == AgentKind.CRITIQUE.value

    @pytest.mark.parametrize("choice", ["Code", "Wizard", ""])
    def test_other_choices_are_rejected(self, choice):
        with pytest.raises(SupervisorDecisionError):
            parse_decision({"next_agent": choice})

    @pytest.mark.asyncio
    async def test_failed_call_becomes_decision_error(self, gateway, service):
        service.add("Supervisor", "not json")
        with pytest.raises(SupervisorDecisionError):
            await Supervisor(gateway).decide({"goal": "x"})


class TestConstitutionGuard:
    """Constitution checks"""

    @pytest.mark.asyncio
    async def test_violation_is_refused(self, gateway, service):
        service.add("Verifier", "VIOLATION")
        assert not await ConstitutionGuard(gateway).is_allowed("something harmful")

    @pytest.mark.asyncio
    async def test_disabled_guard_makes_no_call(self, gateway, service):
        assert await ConstitutionGuard(gateway, enabled=False).is_allowed("anything")
        assert service.calls("Verifier") == []

    @pytest.mark.asyncio
    async def test_unavailable_verifier_allows_text(self, gateway, service):
        service.add("Verifier", ValueError("403 forbidden"))
        assert await ConstitutionGuard(gateway).is_allowed("hello")


class TestErrorBoundary:
    """Node failures become an error-terminal update"""

    @pytest.mark.asyncio
    async def test_known_errors_keep_their_user_message(self):
        @with_error_boundary("planner")
        async def node(state):
            raise PlanningError("bad json", user_message="Planning failed: malformed plan.")

        update = await node({})
        assert update["status"] == "error"
        assert update["next_agent"] == FINAL
        assert update["last_error"] == "Planning failed: malformed plan."
        assert update["history"] == ["[planner] error: Planning failed: malformed plan."]

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_exposed(self):
        @with_error_boundary("dispatch")
        async def node(state):
            raise KeyError("plan_id")

        update = await node({})
        assert update["last_error"] == "Execution failed unexpectedly. Please try again."
