from __future__ import annotations

import copy
import inspect
import logging
import sys
from contextlib import nullcontext
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Protocol, Sequence

from hypothesis import Phase, Verbosity, given, reject, settings
from hypothesis import strategies as st
from hypothesis.reporting import with_reporter
from hypothesis.strategies import SearchStrategy

from .config import EngineOptions

logger = logging.getLogger("pbt_run.engine")

PASSED = True

_current_options: ContextVar[EngineOptions] = ContextVar(
    "pbt_run_engine_options", default=EngineOptions()
)


class PropertyEngine(Protocol):
    def quickcheck(self, prop: Any, options: EngineOptions) -> Any:  # pragma: no cover - interface
        ...

    def check(self, prop: Any, counterexample: Any, options: EngineOptions) -> Any:  # pragma: no cover - interface
        ...

    def counterexample(self) -> Any:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class Property:
    """A predicate over inputs drawn from one strategy per argument."""

    strategies: tuple[SearchStrategy[Any], ...]
    predicate: Callable[..., Any]


def for_all(*strategies: SearchStrategy[Any]) -> Callable[[Callable[..., Any]], Property]:
    """
    Build a property, to be returned from a ``prop_*`` function::

        def prop_reverse_twice():
            return for_all(st.lists(st.integers()))(lambda xs: xs[::-1][::-1] == xs)
    """

    def decorator(predicate: Callable[..., Any]) -> Property:
        return Property(strategies=tuple(strategies), predicate=predicate)

    return decorator


# ---- generators that depend on the engine options of the current run ----


def sized(fn: Callable[[int], SearchStrategy[Any]]) -> SearchStrategy[Any]:
    @st.composite
    def _sized(draw: Callable[..., Any]) -> Any:
        opts = _current_options.get()
        size = draw(st.integers(min_value=opts.start_size, max_value=opts.max_size))
        return draw(fn(size))

    return _sized()


def such_that(strategy: SearchStrategy[Any], predicate: Callable[[Any], bool]) -> SearchStrategy[Any]:
    @st.composite
    def _such_that(draw: Callable[..., Any]) -> Any:
        for _ in range(_current_options.get().constraint_tries):
            value = draw(strategy)
            if predicate(value):
                return value
        reject()

    return _such_that()


def anything() -> SearchStrategy[Any]:
    @st.composite
    def _anything(draw: Callable[..., Any]) -> Any:
        if _current_options.get().any_to_integer:
            return draw(st.integers())
        return draw(
            st.recursive(
                st.none() | st.booleans() | st.integers() | st.text() | st.binary(),
                lambda children: st.lists(children) | st.tuples(children, children),
                max_leaves=10,
            )
        )

    return _anything()


class PropertyFalsified(AssertionError):
    pass


def _settings_kwargs(options: EngineOptions) -> dict[str, Any]:
    phases = [Phase.explicit, Phase.reuse, Phase.generate, Phase.target]
    if not options.noshrink and options.max_shrinks != 0:
        phases.append(Phase.shrink)

    kwargs: dict[str, Any] = {
        "database": None,
        "phases": phases,
        "deadline": timedelta(milliseconds=options.spec_timeout) if options.spec_timeout else None,
    }
    if options.numtests is not None:
        kwargs["max_examples"] = options.numtests
    if options.verbose is True:
        kwargs["verbosity"] = Verbosity.verbose
    elif options.verbose is False:
        kwargs["verbosity"] = Verbosity.quiet

    try:
        known = inspect.signature(settings).parameters
    except (TypeError, ValueError):
        known = {}  # type: ignore[assignment]
    for key, value in options.extra.items():
        if key in known and key not in kwargs:
            kwargs[key] = value
        else:
            logger.debug("Engine ignores option %s=%r", key, value)
    return kwargs


class HypothesisEngine:
    """
    Property-testing engine backed by hypothesis.

    ``quickcheck`` searches for a falsifying input and shrinks it; the
    shrunk input stays available from ``counterexample()`` until the next
    search starts. ``check`` replays a known input without searching.
    """

    def __init__(self) -> None:
        self._counterexample: list[Any] | None = None

    def counterexample(self) -> list[Any] | None:
        return self._counterexample

    def _output(self, options: EngineOptions, fmt: str, *args: Any) -> None:
        if options.verbose is False:
            return
        if options.on_output is not None:
            options.on_output(fmt, list(args))
        else:
            sys.stdout.write(fmt % args)

    def _reporter(self, options: EngineOptions) -> Any:
        if options.on_output is None:
            return nullcontext()
        sink = options.on_output
        return with_reporter(lambda text: sink("%s\n", [text]))

    def quickcheck(self, prop: Any, options: EngineOptions) -> Any:
        self._counterexample = None
        prop = _as_property(prop)
        tests_run = 0
        failures = 0

        def run(args: tuple[Any, ...]) -> None:
            nonlocal tests_run, failures
            if not failures:
                tests_run += 1
            snapshot = copy.deepcopy(list(args))
            try:
                holds = prop.predicate(*args)
            except Exception:
                self._record(snapshot, failures, options)
                failures += 1
                raise
            if not holds:
                self._record(snapshot, failures, options)
                failures += 1
                raise PropertyFalsified(snapshot)

        test = settings(**_settings_kwargs(options))(given(st.tuples(*prop.strategies))(run))
        token = _current_options.set(options)
        try:
            with self._reporter(options):
                test()
        except Exception:
            if self._counterexample is None:
                raise
            self._output(options, "Failed: After %d test(s).\n", tests_run)
            self._output(options, "%r\n", self._counterexample)
            return self._counterexample if options.long_result else False
        finally:
            _current_options.reset(token)

        self._output(options, "OK: Passed %d test(s).\n", tests_run)
        return PASSED

    def _record(self, args: list[Any], previous_failures: int, options: EngineOptions) -> None:
        # the first failure plus at most max_shrinks improvements on it
        if options.max_shrinks is None or previous_failures <= options.max_shrinks:
            self._counterexample = args

    def check(self, prop: Any, counterexample: Sequence[Any], options: EngineOptions) -> Any:
        prop = _as_property(prop)
        args = list(counterexample)
        token = _current_options.set(options)
        try:
            holds = prop.predicate(*args)
        except Exception as exc:
            logger.debug("Counterexample %r raised %r", args, exc)
            holds = False
        finally:
            _current_options.reset(token)

        if holds:
            self._output(options, "OK: The input passed the test.\n")
            return PASSED
        self._output(options, "Failed: The input fails the test.\n")
        return args if options.long_result else False


def _as_property(prop: Any) -> Property:
    if isinstance(prop, Property):
        return prop
    raise TypeError(f"expected a property built with for_all(), got {prop!r}")
