from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any, Mapping

from .build import BuildEnvironment
from .config import EngineOptions, RunOptions, app_env, load_sys_configs
from .cover import maybe_cover
from .engine import PASSED, HypothesisEngine, PropertyEngine
from .errors import RunFailed
from .function_finder import discover, find_properties
from .models import CounterexampleRecord, EngineFault, Failure, TestObligation, exactly
from .options import RunMode, handle_opts, run_type
from .reporting import RetrySummary, Summary
from .store import (
    append_regressions,
    counterexample_path,
    regression_path,
    save_counterexamples,
    try_consult,
)
from .workspace import Workspace

logger = logging.getLogger("pbt_run.runner")


class PropertyRunner:
    """
    Runs one invocation in the mode selected by the run options:

    - quickcheck: discover properties, check each, keep the failing inputs
    - retry: replay the inputs kept by the last failing quickcheck
    - regressions: replay the inputs stored in the regression file
    - store: move kept inputs into the regression file
    """

    def __init__(
        self,
        workspace: Workspace,
        options: RunOptions,
        engine_options: EngineOptions,
        engine: PropertyEngine | None = None,
    ) -> None:
        self.workspace = workspace
        self.options = options
        self.engine_options = engine_options
        self.engine = engine if engine is not None else HypothesisEngine()

    @classmethod
    def from_opts(
        cls,
        workspace: Workspace,
        cli_opts: Mapping[str, Any],
        engine: PropertyEngine | None = None,
    ) -> "PropertyRunner":
        options, engine_options = handle_opts(workspace.config, cli_opts)
        logger.debug("run options: %r", options)
        logger.debug("engine options: %r", engine_options)
        return cls(workspace, options, engine_options, engine)

    def run(self) -> Workspace:
        mode = run_type(self.options)
        configs = load_sys_configs(self.workspace.root, self.options.sys_config)

        with ExitStack() as stack:
            stack.enter_context(app_env(configs))
            stack.enter_context(maybe_cover(self.workspace, self.options.cover))
            env = stack.enter_context(BuildEnvironment(self.workspace))

            if mode is RunMode.RETRY:
                self.do_retry(env)
            elif mode is RunMode.REGRESSIONS:
                self.do_regressions(env)
            elif mode is RunMode.STORE:
                self.do_store()
            else:
                self.do_quickcheck(env)
        return self.workspace

    # ---- quickcheck ----

    def do_quickcheck(self, env: BuildEnvironment) -> None:
        discovery = discover(
            self.workspace,
            env,
            self.options.dir,
            self.options.module,
            self.options.properties,
        )
        if discovery.error is not None:
            raise discovery.error
        props = discovery.obligations
        logger.debug("Props: %r", props)

        failed: list[Failure] = []
        for obligation in props:
            result = self._check(env, obligation)
            if result is not PASSED:
                # a fault leaves the previous obligation's input in the engine
                counterexample = None if isinstance(result, EngineFault) else self.engine.counterexample()
                failed.append(Failure(obligation.module, obligation.prop, result, counterexample))
        logger.debug("Failing Results: %r", failed)

        summary = Summary(total=len(props), failed=len(failed))
        if not failed:
            logger.info(summary.line())
            return
        logger.error(summary.line())
        save_counterexamples(counterexample_path(self.workspace), [f.as_record() for f in failed])
        raise RunFailed(failed)

    def _check(self, env: BuildEnvironment, obligation: TestObligation) -> Any:
        logger.info("Testing %s:%s()", obligation.module, obligation.prop)
        try:
            return self.engine.quickcheck(env.lookup(*obligation.pair)(), self.engine_options)
        except Exception as exc:
            logger.debug("%s:%s() raised %r", obligation.module, obligation.prop, exc)
            return EngineFault(exc)

    # ---- retry / regressions ----

    def do_retry(self, env: BuildEnvironment) -> None:
        records = try_consult(counterexample_path(self.workspace))
        if records is None:
            logger.info("no counterexamples to run.")
            return
        self.run_retries(env, records)

    def do_regressions(self, env: BuildEnvironment) -> None:
        records = try_consult(regression_path(self.workspace, self.options.dir))
        if records is None:
            logger.info("no regression tests to run.")
            return
        self.run_retries(env, records)

    def run_retries(self, env: BuildEnvironment, records: list[CounterexampleRecord]) -> None:
        mods = list(dict.fromkeys(r.module for r in records))
        props = list(dict.fromkeys(r.prop for r in records))
        found = {
            o.pair
            for o in find_properties(
                self.workspace, env, self.options.dir, exactly(mods), exactly(props)
            )
        }
        logger.info("Running %d counterexamples out of %d properties", len(records), len(found))

        attempted = 0
        failed: list[Failure] = []
        for record in records:
            if record.pair not in found or record.value is None:
                continue
            attempted += 1
            result = self._retry(env, record)
            if result is not PASSED:
                failed.append(Failure(record.module, record.prop, result, record.value))

        summary = RetrySummary(
            total=attempted, failed=len(failed), noun="counterexamples", requested=len(records)
        )
        if not failed:
            logger.info(summary.line())
            return
        logger.error(summary.line())
        raise RunFailed(failed)

    def _retry(self, env: BuildEnvironment, record: CounterexampleRecord) -> Any:
        logger.info("Retrying %s:%s()", record.module, record.prop)
        try:
            return self.engine.check(env.lookup(*record.pair)(), record.value, self.engine_options)
        except Exception as exc:
            logger.debug("%s:%s() raised %r", record.module, record.prop, exc)
            return EngineFault(exc)

    # ---- store ----

    def do_store(self) -> None:
        path = counterexample_path(self.workspace)
        records = try_consult(path)
        if records is None:
            logger.info("no counterexamples to store.")
            return
        target = regression_path(self.workspace, self.options.dir)
        stored = append_regressions(target, records)
        logger.info("Stored %d new counterexample(s) in %s", stored, target)


def run(workspace: Workspace, cli_opts: Mapping[str, Any], engine: PropertyEngine | None = None) -> Workspace:
    return PropertyRunner.from_opts(workspace, cli_opts, engine).run()
