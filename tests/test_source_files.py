"""Tests for source file enumeration, reading and line heuristics."""

import dataclasses

import pytest

from archgraph.scanners.base import (
    collect_source_files,
    find_containing_function,
    find_enclosing_class,
    is_comment_line,
    read_source_files,
    should_exclude_file,
    truncate_snippet,
)
from archgraph.types import WarningType


class TestExclusion:
    @pytest.mark.parametrize(
        "path",
        [
            "src/__tests__/a.ts",
            "tests/test_api.py",
            "src/chat.spec.tsx",
            "app/conftest.py",
            "src/types/index.d.ts",
            "public/app.min.js",
            "src/generated/client.ts",
            "test/fixtures/a.js",
        ],
    )
    def test_excluded(self, path):
        assert should_exclude_file(path)

    def test_regular_source(self):
        assert not should_exclude_file("src/api/chat.ts")
        assert not should_exclude_file("src/testing_utils.ts")

    def test_include_tests_keeps_generated_excluded(self):
        assert not should_exclude_file("tests/test_api.py", include_tests=True)
        assert should_exclude_file("src/generated/client.ts", include_tests=True)


class TestCollect:
    def test_walks_sorted_and_skips_dependency_dirs(self, tmp_project, write_file):
        write_file("src/b.ts", "")
        write_file("src/a.py", "")
        write_file("src/readme.md", "")
        write_file("node_modules/openai/index.js", "")
        write_file(".archgraph/x.js", "")
        write_file("tests/test_x.py", "")

        assert collect_source_files(tmp_project) == ["src/a.py", "src/b.ts"]
        assert collect_source_files(tmp_project, include_tests=True) == ["src/a.py", "src/b.ts", "tests/test_x.py"]


class TestRead:
    def test_reads_in_path_order(self, tmp_project, write_file, config):
        write_file("b.ts", "const b = 1;\nconst c = 2;")
        write_file("a.ts", "const a = 1;")

        file_set = read_source_files(tmp_project, ["b.ts", "a.ts"], config)

        assert [f.path for f in file_set.files] == ["a.ts", "b.ts"]
        assert file_set.files[1].lines == ["const b = 1;", "const c = 2;"]
        assert file_set.warnings == []

    def test_problems_become_warnings(self, tmp_project, write_file, config):
        write_file("big.ts", "x" * 100)
        (tmp_project / "bad.py").write_bytes(b"\xff\xfe\x00bad")
        small = dataclasses.replace(config, max_file_size=50)

        file_set = read_source_files(tmp_project, ["big.ts", "bad.py", "gone.ts"], small)

        assert file_set.files == []
        by_file = {w.file: w.type for w in file_set.warnings}
        assert by_file == {
            "big.ts": WarningType.PARSE_ERROR,
            "bad.py": WarningType.PARSE_ERROR,
            "gone.ts": WarningType.MISSING_FILE,
        }


class TestLineHeuristics:
    def test_function_headers(self):
        lines = [
            "export async function handle(req) {",
            "  if (req.ok) {",
            "    return client.call();",
        ]

        assert find_containing_function(lines, 2) == "handle"

    def test_arrow_and_method(self):
        arrow = ["const run = async (x) => {", "  go(x);"]
        method = ["class A {", "  private async load(id: string): Promise<void> {", "    go();"]

        assert find_containing_function(arrow, 1) == "run"
        assert find_containing_function(method, 2) == "load"

    def test_python_def_and_window(self):
        lines = ["def outer():", *["    pass"] * 5, "    call()"]

        assert find_containing_function(lines, 6) == "outer"
        assert find_containing_function(lines, 6, window=2) is None

    def test_enclosing_class(self):
        lines = ["export class Service {", "  run() {}", "}"]

        assert find_enclosing_class(lines, 1, window=10) == "Service"

    def test_comment_and_snippet(self):
        assert is_comment_line("   // note")
        assert is_comment_line("# note")
        assert not is_comment_line("x = 1  # note")
        assert truncate_snippet("  " + "a" * 200, limit=10) == "a" * 10
