"""Factory for assembling the supervisor state machine."""

from __future__ import annotations

from typing import Optional

from langgraph.graph import END, START, StateGraph

from agentura.agents import AgentRegistry
from agentura.archive.reflexion_memory import ReflexionMemory
from agentura.components import (
    Critic,
    ConstitutionGuard,
    Planner,
    PromptRefiner,
    Router,
    StepExecutor,
    Supervisor,
)
from agentura.components.agent_runner import AgentRunner
from agentura.config import GovernanceSettings
from agentura.graph.control import RunControl, Tracer
from agentura.graph.nodes import (
    build_critic_node,
    build_dispatch_node,
    build_finalize_node,
    build_guard_node,
    build_planner_node,
    build_reflexion_node,
    build_router_node,
    build_single_agent_node,
    build_supervisor_node,
)
from agentura.graph.routing import (
    critic_route,
    dispatch_route,
    entry_route,
    guard_route,
    planner_route,
    reflexion_route,
    router_route,
    single_route,
    supervisor_route,
)
from agentura.graph.state import GraphExecutionState
from agentura.session.store import SessionStore


def build_orchestration_graph(
    *,
    agent_registry: AgentRegistry,
    store: SessionStore,
    router: Router,
    planner: Planner,
    runner: AgentRunner,
    executor: StepExecutor,
    supervisor: Supervisor,
    critic: Critic,
    refiner: PromptRefiner,
    guard: ConstitutionGuard,
    governance: GovernanceSettings,
    run_control: RunControl,
    memory: Optional[ReflexionMemory] = None,
    tracer: Optional[Tracer] = None,
):
    """Compose the supervisor graph.

        START → guard → router → single_agent → (critic → reflexion → ...) → finalize → END
                          ↓
                       planner → dispatch → supervisor ─┬→ planner (replan)
                          ↑                            ├→ critic → reflexion → planner
                          └────────────────────────────┘→ finalize → END

    A request carrying an existing plan id enters at dispatch directly.
    """

    tracer = tracer or Tracer(store)

    # ========== Build nodes ==========
    guard_node = build_guard_node(guard=guard, tracer=tracer, run_control=run_control)
    router_node = build_router_node(
        router=router,
        store=store,
        governance=governance,
        tracer=tracer,
        run_control=run_control,
    )
    single_agent_node = build_single_agent_node(
        runner=runner,
        store=store,
        governance=governance,
        tracer=tracer,
        run_control=run_control,
    )
    planner_node = build_planner_node(
        planner=planner,
        agent_registry=agent_registry,
        store=store,
        memory=memory,
        tracer=tracer,
        run_control=run_control,
    )
    dispatch_node = build_dispatch_node(executor=executor, store=store, tracer=tracer, run_control=run_control)
    supervisor_node = build_supervisor_node(
        supervisor=supervisor,
        store=store,
        tracer=tracer,
        run_control=run_control,
    )
    critic_node = build_critic_node(
        critic=critic,
        store=store,
        memory=memory,
        quality_threshold=governance.quality_threshold,
        tracer=tracer,
        run_control=run_control,
    )
    reflexion_node = build_reflexion_node(
        refiner=refiner,
        memory=memory,
        governance=governance,
        tracer=tracer,
        run_control=run_control,
    )
    finalize_node = build_finalize_node(guard=guard, store=store, tracer=tracer)

    # ========== Build graph ==========
    graph = StateGraph(GraphExecutionState)

    graph.add_node("guard", guard_node)
    graph.add_node("router", router_node)
    graph.add_node("single_agent", single_agent_node)
    graph.add_node("planner", planner_node)
    graph.add_node("dispatch", dispatch_node)
    graph.add_node("supervisor", supervisor_node)
    graph.add_node("critic", critic_node)
    graph.add_node("reflexion", reflexion_node)
    graph.add_node("finalize", finalize_node)

    # ========== Entry ==========
    graph.add_conditional_edges(START, entry_route, {"guard": "guard", "dispatch": "dispatch"})
    graph.add_conditional_edges("guard", guard_route, {"router": "router", "finalize": "finalize"})
    graph.add_conditional_edges(
        "router",
        router_route,
        {
            "planner": "planner",
            "single_agent": "single_agent",
            "finalize": "finalize",
        },
    )

    # ========== Single agent ==========
    graph.add_conditional_edges("single_agent", single_route, {"critic": "critic", "finalize": "finalize"})

    # ========== Plan execution loop ==========
    graph.add_conditional_edges("planner", planner_route, {"dispatch": "dispatch", "finalize": "finalize"})
    graph.add_conditional_edges("dispatch", dispatch_route, {"supervisor": "supervisor", "finalize": "finalize"})
    graph.add_conditional_edges(
        "supervisor",
        supervisor_route,
        {
            "planner": "planner",
            "critic": "critic",
            "finalize": "finalize",
        },
    )

    # ========== Critique / reflexion ==========
    graph.add_conditional_edges("critic", critic_route, {"reflexion": "reflexion", "finalize": "finalize"})
    graph.add_conditional_edges(
        "reflexion",
        reflexion_route,
        {
            "planner": "planner",
            "single_agent": "single_agent",
            "finalize": "finalize",
        },
    )

    graph.add_edge("finalize", END)

    return graph.compile()
