"""Analyzer pipeline: parse, run stages, aggregate results and issues."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional

from .confidence import clamp, weighted_average
from .config import CORE_STAGES, PipelineConfig
from .errors import MalformedBlock, ParseFailure, PluginFailure, StageTimeout
from .logging import get_logger, stage_timer
from .markdown import MarkdownAST, parse_markdown
from .models import AnalysisResult, AnalyzerOutput, Issue, PipelineResult

COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"

DEGRADED_CONTEXT = "DEGRADED_CONTEXT"

# Metadata and language detection run side by side.
_STAGE_WORKERS = 2


@dataclass
class _Run:
    """Mutable bookkeeping for one pipeline invocation."""

    result: AnalysisResult
    deadline: Optional[float]
    executor: ThreadPoolExecutor
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)
    timed_out: bool = False


class AnalyzerPipeline:
    """Runs the built-in and custom analyzers over one README document.

    Analyzers are synchronous; each stage runs on a worker thread so the
    deadline bounds it even when it never yields to the event loop.
    """

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()
        self.logger = get_logger("pipeline")

    def execute(self, document_text: str | bytes) -> PipelineResult:
        """Synchronous entry point; must not be called from a running event loop."""
        return asyncio.run(self.execute_async(document_text))

    async def execute_async(self, document_text: str | bytes) -> PipelineResult:
        loop = asyncio.get_running_loop()
        timeout = self.config.timeout
        deadline = loop.time() + timeout if timeout is not None else None

        executor = ThreadPoolExecutor(
            max_workers=_STAGE_WORKERS, thread_name_prefix="readme2ci-stage"
        )
        try:
            return await self._execute(loop, executor, document_text, deadline)
        finally:
            # A stage that overran keeps its thread until it returns; its result is dropped.
            executor.shutdown(wait=False, cancel_futures=True)

    async def _execute(
        self,
        loop: asyncio.AbstractEventLoop,
        executor: ThreadPoolExecutor,
        document_text: str | bytes,
        deadline: Optional[float],
    ) -> PipelineResult:
        try:
            ast = await loop.run_in_executor(executor, parse_markdown, document_text)
        except ParseFailure as exc:
            self.logger.error("Failed to parse document: %s", exc.message)
            return PipelineResult(success=False, errors=[Issue.from_exception(exc, "parser")])

        raw_text = "\n".join(ast.lines)
        run = _Run(result=AnalysisResult(), deadline=deadline, executor=executor)
        analyzers = self.config.core_analyzers()

        peers = ("metadata", "language")
        outcomes = await asyncio.gather(
            *(
                self._run_stage(run, name, partial(analyzers[name].analyze, ast, raw_text))
                for name in peers
            ),
            return_exceptions=True,
        )
        for name, outcome in zip(peers, outcomes):
            self._record_core(run, name, outcome)

        await self._commands_stage(run, ast, raw_text)

        if run.timed_out:
            self._skip(run, "dependencies")
        else:
            outcome = await self._capture(
                self._run_stage(
                    run, "dependencies", partial(analyzers["dependencies"].analyze, ast, raw_text)
                )
            )
            self._record_core(run, "dependencies", outcome)

        for analyzer in self.config.custom_analyzers:
            self._custom_stage_result(
                run,
                analyzer.name,
                None
                if run.timed_out
                else await self._capture(
                    self._run_stage(run, analyzer.name, partial(analyzer.analyze, ast, raw_text))
                ),
            )

        run.result.overall_confidence = self._overall_confidence(run.result)
        self.logger.debug(
            "Pipeline finished: overall confidence %.3f, %d errors, %d warnings",
            run.result.overall_confidence,
            len(run.errors),
            len(run.warnings),
        )
        return PipelineResult(
            success=True, data=run.result, errors=run.errors, warnings=run.warnings
        )

    # ------------------------------------------------------------------
    # Stages

    async def _commands_stage(self, run: _Run, ast: MarkdownAST, raw_text: str) -> None:
        if run.timed_out:
            self._skip(run, "commands")
            return

        contexts = run.result.language_contexts
        if contexts is None:
            run.warnings.append(
                Issue(
                    code=DEGRADED_CONTEXT,
                    message="Language detection unavailable; commands use fallback contexts",
                    component="commands",
                    severity="warning",
                )
            )
            contexts = []

        extractor = self.config.command_extractor
        outcome = await self._capture(
            self._run_stage(
                run,
                "commands",
                partial(
                    extractor.analyze,
                    ast,
                    raw_text,
                    contexts=contexts,
                    parent_context=self.config.parent_context,
                ),
            )
        )
        self._record_core(run, "commands", outcome)
        if run.result.commands is not None:
            for message in run.result.commands.extraction_metadata.warnings:
                run.warnings.append(
                    Issue(
                        code=MalformedBlock.code,
                        message=message,
                        component="commands",
                        severity=MalformedBlock.severity,
                    )
                )

    async def _run_stage(
        self, run: _Run, name: str, call: Callable[[], Any]
    ) -> AnalyzerOutput:
        loop = asyncio.get_running_loop()
        remaining = None if run.deadline is None else run.deadline - loop.time()
        if remaining is not None and remaining <= 0:
            raise StageTimeout(
                f"Stage '{name}' did not start before the pipeline deadline", component=name
            )

        with stage_timer(self.logger, name):
            try:
                output = await asyncio.wait_for(
                    loop.run_in_executor(run.executor, call), remaining
                )
            except asyncio.TimeoutError:
                raise StageTimeout(
                    f"Stage '{name}' exceeded the {self.config.timeout}s pipeline deadline",
                    component=name,
                ) from None

        if not isinstance(output, AnalyzerOutput):
            raise TypeError(
                f"Stage '{name}' returned {type(output).__name__}, expected AnalyzerOutput"
            )
        if not 0.0 <= output.confidence <= 1.0:
            raise ValueError(f"Stage '{name}' reported confidence {output.confidence} outside [0, 1]")
        self.logger.debug("Stage %s confidence %.3f", name, output.confidence)
        return output

    @staticmethod
    async def _capture(work: Awaitable[AnalyzerOutput]) -> AnalyzerOutput | BaseException:
        try:
            return await work
        except Exception as exc:
            return exc

    # ------------------------------------------------------------------
    # Bookkeeping

    def _record_core(self, run: _Run, name: str, outcome: AnalyzerOutput | BaseException) -> None:
        if isinstance(outcome, BaseException):
            self._fail(run, name, outcome)
            return
        slot = {
            "metadata": "metadata",
            "language": "language_contexts",
            "commands": "commands",
            "dependencies": "dependencies",
        }[name]
        setattr(run.result, slot, outcome.data)
        run.result.stage_confidence[name] = outcome.confidence
        run.result.stages[name] = COMPLETED

    def _custom_stage_result(
        self, run: _Run, name: str, outcome: AnalyzerOutput | BaseException | None
    ) -> None:
        if outcome is None:
            self._skip(run, name)
            return
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, StageTimeout):
                wrapped = PluginFailure(
                    f"Custom analyzer '{name}' failed: {outcome}", component=name
                )
                wrapped.__cause__ = outcome
                outcome = wrapped
            self._fail(run, name, outcome)
            return
        run.result.custom[name] = outcome.data
        run.result.custom_confidence[name] = outcome.confidence
        run.result.stages[name] = COMPLETED

    def _fail(self, run: _Run, name: str, exc: BaseException) -> None:
        if isinstance(exc, StageTimeout):
            run.timed_out = True
        self.logger.warning("Stage %s failed: %s", name, exc)
        run.errors.append(Issue.from_exception(exc, name, severity="error"))
        run.result.stages[name] = FAILED

    def _skip(self, run: _Run, name: str) -> None:
        self.logger.warning("Skipping stage %s: pipeline deadline exceeded", name)
        run.errors.append(
            Issue(
                code=StageTimeout.code,
                message=f"Stage '{name}' skipped: pipeline deadline exceeded",
                component=name,
                severity="error",
            )
        )
        run.result.stages[name] = SKIPPED

    def _overall_confidence(self, result: AnalysisResult) -> float:
        completed = [stage for stage in CORE_STAGES if result.stages.get(stage) == COMPLETED]
        if not completed:
            return 0.0
        values = {stage: result.stage_confidence[stage] for stage in completed}
        return round(clamp(weighted_average(values, self.config.stage_weights)), 6)


def analyze_text(document_text: str | bytes, config: PipelineConfig | None = None) -> PipelineResult:
    """Convenience wrapper running a fresh pipeline over ``document_text``."""
    return AnalyzerPipeline(config).execute(document_text)


__all__ = ["AnalyzerPipeline", "COMPLETED", "FAILED", "SKIPPED", "analyze_text"]
