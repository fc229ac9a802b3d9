"""Loop Runner - Core loop execution logic.

Runs agent iterations until the agent reports completion and the task list
agrees, or a safety limit is reached. Each iteration gets a fresh prompt.

Termination never relies on a single noisy signal:
- success needs both a fresh EXIT_SIGNAL: true and a fully checked task list;
- repeated output catches an agent stuck printing the same thing;
- an unchanged activity score catches an agent that no longer touches files.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from codchestra.config import CodchestraConfig
from codchestra.errors import CodchestraError
from codchestra.loop.detectors import ChangeScorer, RepeatedOutputDetector
from codchestra.loop.hooks import HookContext, HookName, HookRegistry
from codchestra.loop.invoker import AgentCallResult
from codchestra.loop.prompt import build_prompt
from codchestra.loop.state import ParsedStatus, RunState, RunStateStore
from codchestra.loop.status_parser import parse_status_block
from codchestra.tasks.checklist import Task, all_tasks_done, get_tasks
from codchestra.utils.git import DiffSummary, diff_summary


class ExitReason(Enum):
    """Why a run stopped."""

    EXIT_SIGNAL = "exit_signal"
    MAX_LOOPS = "max_loops"
    TIMEOUT = "timeout"
    STAGNATION = "stagnation"
    REPEATED_OUTPUT = "repeated_output"
    ERROR = "error"


@dataclass
class LoopResult:
    """Result of a loop run."""

    ok: bool
    exit_reason: ExitReason
    loop: int
    last_status: ParsedStatus | None = None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "exitReason": self.exit_reason.value,
            "loop": self.loop,
            "lastStatus": self.last_status.to_dict() if self.last_status else None,
        }


@dataclass
class LoopOptions:
    """Limits and thresholds for one run."""

    max_loops: int = 50
    timeout_minutes: float = 120
    stagnation_threshold: int = 3
    repeated_output_threshold: int = 2
    min_substantial_output: int = 120

    @classmethod
    def from_config(cls, config: CodchestraConfig) -> LoopOptions:
        return cls(
            max_loops=config.loop.max_loops,
            timeout_minutes=config.loop.timeout_minutes,
            stagnation_threshold=config.loop.stagnation_threshold,
            repeated_output_threshold=config.loop.repeated_output_threshold,
            min_substantial_output=config.loop.min_substantial_output,
        )


class Invoker(Protocol):
    def invoke(self, prompt: str, workspace: Path) -> AgentCallResult: ...


class LoopRunner:
    """Runs the loop - repeated agent invocation until completion or a stop condition.

    Each iteration:
    1. Checks the run deadline and iteration budget
    2. Builds a prompt and invokes the agent
    3. Parses the STATUS block from its output
    4. Updates the repeated-output and stagnation detectors
    5. Persists run state
    6. Stops on success only if the fresh status says EXIT_SIGNAL and all tasks are done
    """

    def __init__(
        self,
        workspace: Path,
        invoker: Invoker,
        options: LoopOptions | None = None,
        *,
        store: RunStateStore | None = None,
        scorer: ChangeScorer | None = None,
        diff_provider: Callable[[Path], DiffSummary | None] = diff_summary,
        task_source: Callable[[Path], list[Task]] = get_tasks,
        hooks: HookRegistry | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the loop runner.

        Args:
            workspace: Working directory the agent operates in
            invoker: Runs one agent call per iteration
            options: Limits and thresholds
            store: Run state persistence (defaults to .codchestra/state.json)
            scorer: Activity scorer (defaults to one using diff_provider)
            diff_provider: Source of diff statistics for the prompt and scorer
            task_source: Returns the current task list for a workspace
            hooks: Lifecycle hooks
            logger: Logger for progress and warnings
            clock: Monotonic clock in seconds, used for the run deadline
        """
        self.workspace = workspace
        self.invoker = invoker
        self.options = options or LoopOptions()
        self.store = store or RunStateStore(workspace)
        self.diff_provider = diff_provider
        self.scorer = scorer or ChangeScorer(diff_provider)
        self.task_source = task_source
        self.hooks = hooks or HookRegistry(logger=logger)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

        self.state: RunState | None = None
        self._repeats = RepeatedOutputDetector(
            threshold=self.options.repeated_output_threshold,
            min_substantial_chars=self.options.min_substantial_output,
        )
        self._last_score = 0

    def run(self) -> LoopResult:
        """Run the loop until a stop condition is reached.

        Resumes from persisted state if any exists; callers wanting a fresh
        run clear the store first.

        Returns:
            LoopResult with the stop reason and final iteration count

        Raises:
            CodchestraError: On fatal setup errors (agent missing, auth expired)
        """
        self.hooks.invoke(HookName.BEFORE_RUN, HookContext(workspace=self.workspace))
        try:
            result = self._execute_loop()
        except CodchestraError:
            raise
        except Exception:
            self.logger.exception("Loop aborted by unexpected error")
            state = self.state
            result = self._build_result(
                ExitReason.ERROR, state.loop if state else 0, state.last_status if state else None
            )

        self.hooks.invoke(
            HookName.AFTER_RUN,
            HookContext(workspace=self.workspace, loop=result.loop, result=result),
        )
        return result

    def _load_or_create_state(self) -> RunState:
        state = self.store.load()
        if state is None:
            state = RunState(cwd=str(self.workspace))
            self.store.save(state)
        elif state.loop:
            self.logger.info("Resuming from loop %d", state.loop)
        return state

    def _execute_loop(self) -> LoopResult:
        """Execute the main iteration loop."""
        opts = self.options
        state = self.state = self._load_or_create_state()
        deadline = self.clock() + opts.timeout_minutes * 60
        self._repeats.reset(last_hash=state.last_output_hash)
        self._last_score = self.scorer.score(self.workspace)

        while state.loop < opts.max_loops:
            if self.clock() > deadline:
                self.logger.warning("Run timeout of %s minutes reached", opts.timeout_minutes)
                return self._build_result(ExitReason.TIMEOUT, state.loop, state.last_status)

            state.loop += 1
            self.logger.info("Loop %d/%d", state.loop, opts.max_loops)

            reason, status = self._run_iteration(state)
            if reason is not None:
                return self._build_result(reason, state.loop, status or state.last_status)

        self.logger.info("Max loops (%d) reached", opts.max_loops)
        return self._build_result(ExitReason.MAX_LOOPS, state.loop, state.last_status)

    def _run_iteration(self, state: RunState) -> tuple[ExitReason | None, ParsedStatus | None]:
        """Run one iteration and evaluate every stop condition.

        Returns:
            Tuple of (stop reason or None to continue, status parsed this iteration)
        """
        self.hooks.invoke(
            HookName.BEFORE_LOOP, HookContext(workspace=self.workspace, loop=state.loop)
        )

        prompt = build_prompt(
            self.workspace,
            state,
            self.diff_provider(self.workspace),
            max_loops=self.options.max_loops,
        )
        result = self.invoker.invoke(prompt, self.workspace)

        status = parse_status_block(result.stdout)
        if status is None:
            self.logger.warning("AI response missing STATUS block.")
        else:
            state.last_status = status
            self.logger.info(
                "progress=%d%% tasks=%d/%d exit_signal=%s %s",
                status.progress,
                status.tasks_completed,
                status.tasks_total,
                status.exit_signal,
                status.summary,
            )

        self.hooks.invoke(
            HookName.AFTER_LOOP,
            HookContext(
                workspace=self.workspace, loop=state.loop, output=result.output, status=status
            ),
        )

        if self._check_repeated_output(state, result.output):
            self.store.save(state)
            self.logger.warning(
                "Same output repeated %d times, stopping", self.options.repeated_output_threshold
            )
            return ExitReason.REPEATED_OUTPUT, status

        stagnant = self._check_stagnation(state)
        self.store.save(state)
        if stagnant:
            self.logger.warning(
                "No file changes for %d loops, stopping", state.stagnation_count
            )
            return ExitReason.STAGNATION, status

        if status is not None and status.exit_signal:
            if all_tasks_done(self.task_source(self.workspace)):
                self.logger.info("EXIT_SIGNAL received and all tasks done")
                return ExitReason.EXIT_SIGNAL, status
            self.logger.warning("EXIT_SIGNAL received but tasks remain; continuing")

        return None, status

    def _check_repeated_output(self, state: RunState, output: str) -> bool:
        tripped = self._repeats.observe(output)
        state.last_output_hash = self._repeats.last_hash
        return tripped

    def _check_stagnation(self, state: RunState) -> bool:
        score = self.scorer.score(self.workspace)
        if score == self._last_score:
            state.stagnation_count += 1
        else:
            state.stagnation_count = 0
        self._last_score = score
        return state.stagnation_count >= self.options.stagnation_threshold

    @staticmethod
    def _build_result(
        reason: ExitReason, loop: int, last_status: ParsedStatus | None
    ) -> LoopResult:
        return LoopResult(
            ok=reason is ExitReason.EXIT_SIGNAL,
            exit_reason=reason,
            loop=loop,
            last_status=last_status,
        )
