"""Codchestra loop - repeated agent invocation until the work is done.

Each iteration starts fresh: the agent gets the task list, the diff summary
and its own last STATUS report, does some work, and reports again. The loop
stops when the agent says it is finished and the task list agrees, or when a
limit or stuck-detector trips.
"""

from codchestra.loop.hooks import HookContext, HookName, HookRegistry
from codchestra.loop.invoker import AgentCallResult, AgentInvoker, resolve_ai_command
from codchestra.loop.runner import ExitReason, LoopOptions, LoopResult, LoopRunner
from codchestra.loop.state import ParsedStatus, RunState, RunStateStore
from codchestra.loop.status_parser import has_status_block, parse_status_block

__all__ = [
    "AgentCallResult",
    "AgentInvoker",
    "ExitReason",
    "HookContext",
    "HookName",
    "HookRegistry",
    "LoopOptions",
    "LoopResult",
    "LoopRunner",
    "ParsedStatus",
    "RunState",
    "RunStateStore",
    "has_status_block",
    "parse_status_block",
    "resolve_ai_command",
]
