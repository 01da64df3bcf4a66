from __future__ import annotations

import logging
import re
import sys
from enum import Enum
from typing import Any, Callable, Mapping

from .config import DEFAULT_DIR, EngineOptions, RunOptions
from .models import ANY, Filter, exactly

logger = logging.getLogger("pbt_run.options")

OutputSink = Callable[[str, list[Any]], Any]

# Keys that belong to the coordinator; everything else is forwarded to the engine.
RUN_KEYS = frozenset(
    {"dir", "module", "properties", "cover", "retry", "regressions", "store", "sys_config"}
)
BOOLEAN_ENGINE_KEYS = ("long_result", "noshrink", "any_to_integer")
INTEGER_ENGINE_KEYS = (
    "numtests",
    "start_size",
    "max_size",
    "max_shrinks",
    "constraint_tries",
    "spec_timeout",
)


class RunMode(Enum):
    QUICKCHECK = "quickcheck"
    RETRY = "retry"
    REGRESSIONS = "regressions"
    STORE = "store"


def run_type(opts: RunOptions) -> RunMode:
    if opts.retry:
        return RunMode.RETRY
    if opts.regressions:
        return RunMode.REGRESSIONS
    if opts.store:
        return RunMode.STORE
    return RunMode.QUICKCHECK


def parse_csv(value: str) -> list[str]:
    return re.split(r", *", value)


def to_filter(value: Any) -> Filter:
    if value is None:
        return ANY
    if isinstance(value, str):
        return exactly(parse_csv(value))
    return exactly([str(v) for v in value])


def split_string(value: str) -> list[str]:
    return [part for part in value.split(",") if part]


def sys_config_list(config_value: Any, cli_value: str | None) -> tuple[str, ...]:
    configs: list[str]
    if not config_value:
        configs = []
    elif isinstance(config_value, str):
        configs = [config_value]
    else:
        configs = [str(v) for v in config_value]
    return tuple(configs + split_string(cli_value or ""))


# ---- on_output: "namespace:symbol" references resolved against known sinks ----


def _io_format(fmt: str, args: list[Any]) -> None:
    sys.stdout.write(fmt % tuple(args) if args else fmt)


def _logging_info(fmt: str, args: list[Any]) -> None:
    logging.getLogger("pbt_run.output").info(fmt.rstrip("\n"), *args)


OUTPUT_SINKS: dict[tuple[str, str], OutputSink] = {
    ("io", "format"): _io_format,
    ("logging", "info"): _logging_info,
}


def register_output_sink(namespace: str, symbol: str, sink: OutputSink) -> None:
    OUTPUT_SINKS[(namespace, symbol)] = sink


_FUNCTION_REF = re.compile(r"^\s*\{?\s*(?P<ns>\w+)\s*[:,]\s*(?P<sym>\w+)\s*\}?\s*$")


def parse_function_ref(value: Any) -> tuple[str, str] | None:
    if isinstance(value, (list, tuple)):
        if len(value) == 2 and all(isinstance(v, str) for v in value):
            return (value[0], value[1])
        return None
    if not isinstance(value, str):
        return None
    match = _FUNCTION_REF.match(value)
    if match is None:
        return None
    return (match.group("ns"), match.group("sym"))


def on_output(value: Any) -> OutputSink | None:
    """Resolve an ``on_output`` reference; unknown or unparsable references give ``None``."""
    if callable(value):
        return value
    ref = parse_function_ref(value)
    if ref is None:
        return None
    return OUTPUT_SINKS.get(ref)


# ---- merging and splitting ----


def merge_opts(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(old)
    merged.update({k: v for k, v in new.items() if v is not None})
    return merged


def engine_options(opts: Mapping[str, Any]) -> EngineOptions:
    kwargs: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in opts.items():
        if key in RUN_KEYS or value is None:
            continue
        if key == "verbose":
            kwargs["verbose"] = bool(value)
        elif key in BOOLEAN_ENGINE_KEYS:
            kwargs[key] = bool(value)
        elif key in INTEGER_ENGINE_KEYS:
            kwargs[key] = int(value)
        elif key == "on_output":
            sink = on_output(value)
            if sink is None:
                logger.debug("Ignoring unresolvable on_output %r", value)
            else:
                kwargs["on_output"] = sink
        else:
            extra[key] = value
    return EngineOptions(extra=extra, **kwargs)


def run_options(opts: Mapping[str, Any], sys_configs: tuple[str, ...]) -> RunOptions:
    return RunOptions(
        dir=opts.get("dir") or DEFAULT_DIR,
        module=to_filter(opts.get("module")),
        properties=to_filter(opts.get("properties")),
        cover=bool(opts.get("cover", False)),
        retry=bool(opts.get("retry", False)),
        regressions=bool(opts.get("regressions", False)),
        store=bool(opts.get("store", False)),
        sys_config=sys_configs,
    )


def handle_opts(
    config_opts: Mapping[str, Any], cli_opts: Mapping[str, Any]
) -> tuple[RunOptions, EngineOptions]:
    """
    Merge project configuration with invocation overrides and split the result.

    Command-line values win per key. ``sys_config`` is the exception: the
    configured files come first and the command-line files are appended.
    """
    merged = merge_opts(config_opts, cli_opts)
    sys_configs = sys_config_list(config_opts.get("sys_config"), cli_opts.get("sys_config"))
    return run_options(merged, sys_configs), engine_options(merged)
