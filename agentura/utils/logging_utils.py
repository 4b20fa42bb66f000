"""Logging utilities for Agentura."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


def setup_logging(level: int = logging.INFO, logs_dir: Optional[Path] = None) -> logging.Logger:
    """Setup logging configuration for Agentura.

    Args:
        level: Console logging level (default: INFO is raised to WARNING for the console)
        logs_dir: Directory for the timestamped log file (default: ./logs)

    Returns:
        Configured logger instance
    """
    logs_dir = Path(logs_dir or "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"agentura_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    # Create root logger for agentura
    logger = logging.getLogger("agentura")
    logger.setLevel(logging.DEBUG)  # Set to DEBUG to capture all child logs
    logger.propagate = False

    # Clear existing handlers
    logger.handlers = []

    # File handler (detailed logs)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_formatter)

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("Agentura session started")
    logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def _preview(text: str, limit: int = 100) -> str:
    return f"{text[:limit]}{'...' if len(text) > limit else ''}"


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        from_node: Source node making the decision
        decision: Routing destination
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_plan_created(logger: logging.Logger, plan: Dict[str, Any]) -> None:
    """Log plan creation details."""
    logger.info(f"\n{'='*80}")
    logger.info(f"Plan created: {plan.get('id')}")
    logger.info(f"  Total steps: {len(plan.get('steps', []))}")
    for step in plan.get("steps", []):
        logger.info(f"  Step {step.get('step_id')}:")
        logger.info(f"    - Agent: {step.get('agent')}")
        logger.info(f"    - Description: {step.get('description')}")
        logger.info(f"    - Depends on: {step.get('dependencies', [])}")
        logger.info(f"    - Output key: {step.get('output_key')}")
    logger.info(f"{'='*80}\n")


def log_step_execution(logger: logging.Logger, plan_id: str, step: Dict[str, Any]) -> None:
    """Log step execution details."""
    logger.info(f"Executing step {step.get('step_id')} of plan {plan_id}:")
    logger.info(f"  Agent: {step.get('agent')}")
    logger.info(f"  Description: {step.get('description')}")
    logger.info(f"  Depends on: {step.get('dependencies', [])}")
    logger.info(f"  Acceptance criteria: {step.get('acceptance_criteria') or 'N/A'}")


def log_node_entry(logger: logging.Logger, node_name: str, state: Dict[str, Any]) -> None:
    """Log node entry with a compact state snapshot."""
    logger.info(f"\n{'#'*80}")
    logger.info(f"# ENTERING NODE: {node_name}")
    logger.info(f"{'#'*80}")
    logger.info("State snapshot:")
    logger.info(f"  - message_id: {state.get('message_id')}")
    logger.info(f"  - loops: {state.get('loops', 0)}/{state.get('max_loops')}")
    logger.info(f"  - next_agent: {state.get('next_agent')}")
    logger.info(f"  - plan_id: {state.get('plan_id')}")
    logger.info(f"  - retries_used: {state.get('retries_used', 0)}")
    logger.info(f"  - history: {len(state.get('history', []))} entries")


def log_node_exit(logger: logging.Logger, node_name: str, updates: Dict[str, Any]) -> None:
    """Log node exit with state updates."""
    logger.info(f"# EXITING NODE: {node_name}")
    for key, value in updates.items():
        if key == "history":
            logger.info(f"  - history: +{len(value)} entries")
        else:
            logger.info(f"  - {key}: {_preview(str(value), 200)}")


def log_prompt(logger: logging.Logger, phase: str, prompt: str) -> None:
    """Log the system prompt used for a phase (DEBUG level, it can be long)."""
    logger.debug(f"System Prompt for {phase}:\n{prompt}")


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """Log error with context."""
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    """Log user input."""
    logger.info(f"User input: {_preview(content)}")


def log_agent_response(logger: logging.Logger, agent: str, content: str) -> None:
    """Log agent response."""
    logger.info(f"Agent response ({agent}): {_preview(content)}")


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation."""
    logger.info(f"Tool call: {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, indent=2)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log tool execution result."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")

    result_str = str(result)
    if len(result_str) > 500:
        result_str = result_str[:500] + "... (truncated)"
    logger.debug(f"  Result: {result_str}")
