from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pbt_run.errors import MalformedRecordFile
from pbt_run.models import CounterexampleRecord
from pbt_run.store import (
    append_regressions,
    consult,
    format_record,
    parse_record,
    save_counterexamples,
    try_consult,
)


def test_record_line_format() -> None:
    record = CounterexampleRecord("prop_queue", "prop_order", [1, 2, 3])

    assert format_record(record) == "('prop_queue', 'prop_order', [1, 2, 3])"
    assert parse_record(format_record(record)) == record


@pytest.mark.parametrize(
    "line",
    ["('prop_queue', 'prop_order')", "['prop_queue', 'prop_order', 1]", "(1, 'p', 2)", "os.system('x')"],
)
def test_parse_record_rejects_non_records(line: str) -> None:
    assert parse_record(line) is None


def test_save_overwrites_and_filters(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "_build" / "cex.consult"
    path.parent.mkdir()
    path.write_text("('old', 'prop_old', [0])\n", encoding="utf-8")

    written = save_counterexamples(
        path,
        [
            CounterexampleRecord("m", "prop_a", [1]),
            CounterexampleRecord("m", "prop_b", None),
            CounterexampleRecord("m", "prop_c", [object()]),
        ],
    )

    assert written == 1
    assert path.read_text(encoding="utf-8") == "('m', 'prop_a', [1])\n"
    assert any("prop_c" in message for message in caplog.messages)


def test_consult_skips_blank_and_comment_lines(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"
    path.write_text("# corpus\n\n('m', 'prop_a', [1])\n('m', 'prop_b', ['x'])\n", encoding="utf-8")

    assert [r.prop for r in consult(path)] == ["prop_a", "prop_b"]


def test_consult_malformed_line(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"
    path.write_text("('m', 'prop_a', [1])\nnot a record\n", encoding="utf-8")

    with pytest.raises(MalformedRecordFile) as excinfo:
        consult(path)
    assert excinfo.value.lineno == 2


def test_consult_undecodable_line(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"
    path.write_bytes(b"('m', 'prop_a', [1])\n('m', 'prop_a', ['\xff\xfe'])\n")

    with pytest.raises(MalformedRecordFile) as excinfo:
        consult(path)
    assert excinfo.value.lineno == 2
    assert try_consult(path) is None


def test_try_consult_missing_or_malformed(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="pbt_run")
    malformed = tmp_path / "bad.consult"
    malformed.write_text("{m, prop_a, [1]}.\n", encoding="utf-8")

    assert try_consult(tmp_path / "missing.consult") is None
    assert try_consult(malformed) is None


def test_append_dedups_against_file_and_batch(tmp_path: Path) -> None:
    path = tmp_path / "test" / "regressions.consult"

    first = append_regressions(
        path,
        [
            CounterexampleRecord("m", "prop_a", [1]),
            CounterexampleRecord("m", "prop_a", [1]),
            CounterexampleRecord("m", "prop_a", [2]),
            CounterexampleRecord("m", "prop_b", None),
        ],
    )
    second = append_regressions(path, [CounterexampleRecord("m", "prop_a", [2])])

    assert (first, second) == (2, 0)
    assert [r.value for r in consult(path)] == [[1], [2]]


def test_append_terminates_previous_line(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"
    path.write_text("('m', 'prop_a', [1])", encoding="utf-8")

    append_regressions(path, [CounterexampleRecord("m", "prop_a", [2])])

    assert path.read_text(encoding="utf-8") == "('m', 'prop_a', [1])\n('m', 'prop_a', [2])\n"


@pytest.mark.parametrize(("stored", "appended"), [(0.0, -0.0), (1, True), (1, 1.0)])
def test_append_keeps_inputs_that_only_compare_equal(tmp_path: Path, stored: object, appended: object) -> None:
    path = tmp_path / "regressions.consult"
    path.write_text(f"('m', 'prop_sign', [{stored!r}])\n", encoding="utf-8")

    assert append_regressions(path, [CounterexampleRecord("m", "prop_sign", [appended])]) == 1
    assert path.read_text(encoding="utf-8").splitlines() == [
        f"('m', 'prop_sign', [{stored!r}])",
        f"('m', 'prop_sign', [{appended!r}])",
    ]


def test_append_dedups_within_batch_by_written_form(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"

    appended = append_regressions(
        path,
        [
            CounterexampleRecord("m", "prop_sign", [0.0]),
            CounterexampleRecord("m", "prop_sign", [-0.0]),
            CounterexampleRecord("m", "prop_sign", [0.0]),
        ],
    )

    assert appended == 2
    assert [repr(r.value) for r in consult(path)] == ["[0.0]", "[-0.0]"]


def test_append_to_malformed_file_fails(tmp_path: Path) -> None:
    path = tmp_path / "regressions.consult"
    path.write_text("garbage\n", encoding="utf-8")

    with pytest.raises(MalformedRecordFile):
        append_regressions(path, [CounterexampleRecord("m", "prop_a", [1])])
    assert path.read_text(encoding="utf-8") == "garbage\n"
