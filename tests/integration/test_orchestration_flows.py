"""End-to-end request flows through the compiled graph, with scripted models."""

import re

import pytest

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.session import StepStatus
from agentura.tools.code_executor import ExecutionResult
from tests.support import (
    FakeCodeExecutor,
    Gate,
    Reply,
    UnreachableEmbeddings,
    critique_json,
    decision_json,
    make_settings,
    plan_json,
    route_json,
    tool_call,
)

_STEP = re.compile(r"executing step (\d+) only")


def step_number(request) -> int:
    return int(_STEP.search(request.turns[-1].text).group(1))


class TestSingleAgentFlow:
    """Requests answered by one specialist"""

    @pytest.mark.asyncio
    async def test_research_answer_keeps_sources_and_passes_critique(self, make_orchestrator, service):
        grounding = {"grounding_chunks": [{"web": {"uri": "https://news.example/fusion", "title": "Fusion"}}]}
        service.add("Router", route_json("Research"))
        service.add("Research", Reply(chunks=["Fusion ", "ignition was repeated."], grounding=grounding))
        service.add("Critique", critique_json(4.5, "well sourced"))
        orchestrator = make_orchestrator()

        message = await orchestrator.send_message("What is new in fusion research?")

        assert message.finalized and not message.is_loading
        assert message.agent is AgentKind.RESEARCH
        assert message.content == "Fusion ignition was repeated."
        assert [source.uri for source in message.sources] == ["https://news.example/fusion"]
        assert message.critique.average == pytest.approx(4.5)
        assert message.error is None
        assert service.calls("Planner") == []
        assert not orchestrator.store.is_loading

    @pytest.mark.asyncio
    async def test_chat_answer_skips_critique(self, make_orchestrator, service):
        service.add("Router", route_json("Chat"))
        service.add("Chat", "Hello there!")
        message = await make_orchestrator().send_message("hi")

        assert message.content == "Hello there!"
        assert service.calls("Critique") == []
        assert any("Finished with status 'done'" in line for line in message.trace)

    @pytest.mark.asyncio
    async def test_code_tool_output_is_explained(self, make_orchestrator, service):
        service.add("Router", route_json("Code"))
        service.add("Code", Reply(text="Running:", function_calls=[tool_call("code_interpreter", code="print(6*7)")]))
        service.add("Chat", "The program printed 42, the answer.")
        message = await make_orchestrator().send_message("what is 6*7? run it")

        assert message.content == "Running:\n\nThe program printed 42, the answer."
        assert [call.name for call in message.function_calls] == ["code_interpreter"]
        assert "Tool output:\n42" in service.calls("Chat")[0].turns[0].text

    @pytest.mark.asyncio
    async def test_archive_search_backs_research(self, make_orchestrator, service):
        orchestrator = make_orchestrator()
        await orchestrator.ingest_document(
            "Bees communicate the location of flowers by dancing.\n\nAnts follow pheromone trails to food.",
            "insects.md",
        )
        service.add("Router", route_json("Research"))
        service.add("Research", Reply(function_calls=[tool_call("search_archive", query="how do bees talk?")]))
        service.add("Critique", critique_json(5))

        message = await orchestrator.send_message("How do bees share where flowers are?")

        assert "(insects.md, score" in service.calls("Chat")[0].turns[0].text
        assert message.content == "OK"
        assert orchestrator.archive_sources() == {"insects.md": 2}


class TestPlannedFlow:
    """Requests decomposed into plans"""

    @pytest.mark.asyncio
    async def test_chain_runs_in_dependency_order(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add(
            "Planner",
            plan_json(
                {"description": "Collect facts", "output_key": "facts"},
                {"description": "Outline from {facts}", "dependencies": [1]},
                {"description": "Write the essay", "dependencies": [2]},
            ),
        )
        service.add("Chat", lambda request: f"result {step_number(request)}")
        service.add("Supervisor", decision_json(FINAL, "complete"))

        message = await make_orchestrator().send_message("Write an essay about bees")

        assert [step_number(request) for request in service.calls("Chat")] == [1, 2, 3]
        assert "Outline from result 1" in service.calls("Chat")[1].turns[-1].text
        assert "Output of step 2:\nresult 2" in service.calls("Chat")[2].turns[-1].text
        assert message.content == "result 3"
        assert message.agent is AgentKind.PLANNER
        assert [step.status for step in message.plan.steps] == [StepStatus.COMPLETED] * 3
        assert not message.plan.abandoned

    @pytest.mark.asyncio
    async def test_independent_steps_run_concurrently(self, make_orchestrator, service):
        gate = Gate(expected=2)

        async def answer(request):
            await gate.wait()
            return f"answer {step_number(request)}"

        service.add("Router", route_json("Planner"))
        service.add(
            "Planner",
            plan_json({"description": "Research cats"}, {"description": "Research dogs"}),
        )
        service.add("Chat", answer)
        service.add("Supervisor", decision_json(FINAL))

        message = await make_orchestrator().send_message("Compare cats and dogs")

        assert gate.max_concurrent == 2
        assert len(service.calls("Chat")) == 2
        assert [step.result for step in message.plan.steps] == ["answer 1", "answer 2"]
        assert message.content == "## Step 1: Research cats\nanswer 1\n\n## Step 2: Research dogs\nanswer 2"
        assert sum("Dispatching step(s) [1, 2]." in line for line in message.trace) == 1

    @pytest.mark.asyncio
    async def test_failed_step_blocks_only_its_dependants(self, make_orchestrator, service):
        executor = FakeCodeExecutor(ExecutionResult(stdout="", stderr="ZeroDivisionError: division by zero"))
        service.add("Router", route_json("Planner"))
        service.add(
            "Planner",
            plan_json(
                {"description": "Greet"},
                {"description": "Divide", "agent": "Code"},
                {"description": "Report the quotient", "dependencies": [2]},
            ),
        )
        service.add("Chat", "hello")
        service.add("Code", Reply(function_calls=[tool_call("code_interpreter", code="1/0")]))
        service.add("Supervisor", decision_json(FINAL))

        message = await make_orchestrator(code_executor=executor).send_message("greet and divide")

        statuses = [step.status for step in message.plan.steps]
        assert statuses == [StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.PENDING]
        assert message.plan.abandoned
        assert message.content == "hello"
        assert len(service.calls("Chat")) == 1
        assert any("skipped because a dependency failed" in line for line in message.trace)

    @pytest.mark.asyncio
    async def test_failed_code_step_is_critiqued_refined_and_replanned(self, make_orchestrator, service):
        executor = FakeCodeExecutor(
            ExecutionResult(stdout="", stderr="NameError: name 'np' is not defined"),
            ExecutionResult(stdout="3.14159"),
        )
        service.add("Router", route_json("Planner"))
        service.add("Planner", plan_json({"description": "Compute pi", "agent": "Code"}))
        service.add("Code", Reply(function_calls=[tool_call("code_interpreter", code="print(np.pi)")]))
        service.add("Supervisor", decision_json("Critique", "step failed"), decision_json(FINAL))
        service.add("Critique", critique_json(0.5, "numpy was never imported"))
        service.add("Retry", "Compute pi using math.pi from the standard library.")
        orchestrator = make_orchestrator(code_executor=executor)

        message = await orchestrator.send_message("Compute pi with numpy")

        messages = orchestrator.store.messages
        assert len(messages) == 3
        first, second = messages[1], messages[2]
        assert second.id == message.id
        assert first.finalized and "NameError" in first.content
        assert first.plan.step(1).status is StepStatus.FAILED
        assert first.plan.id != second.plan.id

        assert message.content == "3.14159"
        assert message.plan.step(1).status is StepStatus.COMPLETED
        assert "math.pi" in service.calls("Planner")[1].turns[0].text
        assert any("Step 1 failed" in line for line in message.trace)
        assert any("Step 1 completed" in line for line in message.trace)
        assert len(service.calls("Retry")) == 1
        assert [entry.fix for entry in orchestrator.memory.entries] == [
            "Compute pi using math.pi from the standard library."
        ]

    @pytest.mark.asyncio
    async def test_retry_budget_allows_one_refinement(self, make_orchestrator, service):
        service.add("Router", route_json("Research"))
        service.add("Research", "weak answer")
        service.add("Critique", critique_json(1, "too vague"))
        service.add("Retry", "Be specific.")
        service.add("Planner", plan_json({"agent": "Research"}))
        service.add("Supervisor", decision_json("Critique"))

        orchestrator = make_orchestrator()
        message = await orchestrator.send_message("tell me something")

        assert len(service.calls("Retry")) == 1
        assert len(service.calls("Critique")) == 2
        assert message.finalized
        assert any("retry budget spent" in line for line in message.trace)

        messages = orchestrator.store.messages
        assert len(messages) == 3
        first = messages[1]
        assert first.id != message.id
        assert first.finalized and first.plan is None
        assert first.content == "weak answer"
        assert any("continuing in a new message" in line for line in first.trace)
        assert message.plan is not None

    @pytest.mark.asyncio
    async def test_failed_refinement_keeps_the_answer(self, make_orchestrator, service):
        service.add("Router", route_json("Research"))
        service.add("Research", "A usable but weak answer.")
        service.add("Critique", critique_json(2, "thin on detail"))
        service.add("Retry", ValueError("400 bad request"))
        orchestrator = make_orchestrator()

        message = await orchestrator.send_message("explain tides")

        assert message.content == "A usable but weak answer."
        assert message.error is None
        assert any("Refinement failed" in line for line in message.trace)
        assert any("Finished with status 'done'" in line for line in message.trace)
        assert service.calls("Planner") == []
        entries = orchestrator.memory.entries
        assert [(entry.critique, entry.fix) for entry in entries] == [("thin on detail", None)]

    @pytest.mark.asyncio
    async def test_memory_outage_does_not_fail_the_run(self, make_orchestrator, service):
        service.add("Router", route_json("Research"))
        service.add("Research", "A usable but weak answer.")
        service.add("Critique", critique_json(2, "thin on detail"))
        orchestrator = make_orchestrator(make_settings(retry_budget=0), embeddings=UnreachableEmbeddings(size=32))

        message = await orchestrator.send_message("explain tides")

        assert message.content == "A usable but weak answer."
        assert message.error is None
        assert any("Lesson not saved" in line for line in message.trace)
        assert orchestrator.memory.entries == []

    @pytest.mark.asyncio
    async def test_memory_outage_during_a_retry_still_replans(self, make_orchestrator, service):
        service.add("Router", route_json("Research"))
        service.add("Research", "weak answer", "better answer")
        service.add("Critique", critique_json(1, "too vague"), critique_json(5))
        service.add("Retry", "Be specific.")
        service.add("Planner", plan_json({"agent": "Research"}))
        service.add("Supervisor", decision_json("Critique"))
        orchestrator = make_orchestrator(embeddings=UnreachableEmbeddings(size=32))

        message = await orchestrator.send_message("tell me something")

        assert message.content == "better answer"
        assert message.error is None
        assert any("Past lessons unavailable" in line for line in message.trace)
        assert any("Lesson not saved" in line for line in message.trace)

    @pytest.mark.asyncio
    async def test_lessons_are_recalled_for_similar_goals(self, make_orchestrator, service):
        service.add("Router", route_json("Research"), route_json("Planner"))
        service.add("Research", "weak answer")
        service.add("Critique", critique_json(1, "too vague"), critique_json(1, "still vague"))
        service.add("Retry", "Be specific.")
        service.add("Planner", plan_json({"agent": "Research"}))
        service.add("Supervisor", decision_json("Critique"), decision_json(FINAL))
        orchestrator = make_orchestrator()

        await orchestrator.send_message("tell me something")
        message = await orchestrator.send_message("tell me something")

        assert len(service.calls("Planner")) == 2
        assert "too vague" in service.calls("Planner")[1].system_instruction
        assert any("Recalled 1 lesson(s)" in line for line in message.trace)

    @pytest.mark.asyncio
    async def test_loop_cap_finishes_the_run(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add("Planner", plan_json({}))
        service.add("Supervisor", decision_json("Planner", "try again"))

        message = await make_orchestrator(make_settings(max_loops=2)).send_message("loop forever")

        assert len(service.calls("Supervisor")) == 2
        assert len(service.calls("Planner")) == 3
        assert message.error is None
        assert any("Loop limit reached" in line for line in message.trace)


class TestPlanFailures:
    """Plans that cannot complete"""

    @pytest.mark.asyncio
    async def test_dependency_cycle_is_reported(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add("Planner", plan_json({"dependencies": [2]}, {"dependencies": [1]}))

        message = await make_orchestrator().send_message("impossible plan")

        assert "cycle" in message.error
        assert message.content == message.error
        assert service.calls("Chat") == []
        assert message.plan.abandoned

    @pytest.mark.asyncio
    async def test_invalid_supervisor_choice_is_an_error(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add("Planner", plan_json({}))
        service.add("Supervisor", decision_json("Code"))

        message = await make_orchestrator().send_message("do it")

        assert "invalid decision" in message.error
        assert message.finalized

    @pytest.mark.asyncio
    async def test_planning_failure_is_an_error(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add("Planner", plan_json({"agent": "Router"}))

        message = await make_orchestrator().send_message("do it")

        assert message.error.startswith("Planning failed")
        assert message.plan is None


class TestExecutePlan:
    """Re-running an existing plan"""

    @pytest.mark.asyncio
    async def test_completed_steps_are_kept(self, make_orchestrator, service):
        service.add("Router", route_json("Planner"))
        service.add(
            "Planner",
            plan_json({"description": "Gather", "output_key": "facts"}, {"description": "Use {facts}", "dependencies": [1]}),
        )
        service.add("Chat", lambda request: f"run {step_number(request)}")
        service.add("Supervisor", decision_json(FINAL))
        orchestrator = make_orchestrator()
        original = await orchestrator.send_message("two steps")

        rerun = await orchestrator.execute_plan(original.plan, completed_step_ids=[1])

        assert rerun.id != original.id
        assert rerun.plan.id != original.plan.id
        assert rerun.plan.step(1).result == "run 1"
        assert rerun.plan.step(2).status is StepStatus.COMPLETED
        assert len(service.calls("Chat")) == 3
        assert "Use run 1" in service.calls("Chat")[-1].turns[-1].text
        assert "Overall goal: two steps" in service.calls("Chat")[-1].turns[-1].text
        assert len(service.calls("Router")) == 1
