"""Tests for paydown.globs: glob matching of ledger paths."""

from __future__ import annotations

import pytest

from paydown.globs import GlobSet, escape_glob, normalize_path, path_matches_globs


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("src/a.ts", "src/a.ts"),
            ("./src/a.ts", "src/a.ts"),
            ("src\\lib\\a.ts", "src/lib/a.ts"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_path(raw) == expected


class TestGlobSet:
    @pytest.mark.parametrize(
        ("pattern", "path", "expected"),
        [
            ("*.ts", "a.ts", True),
            ("*.ts", "src/a.ts", False),
            ("src/**/*.ts", "src/a.ts", True),
            ("src/**/*.ts", "src/deep/er/a.ts", True),
            ("dist/**", "dist/x.js", True),
            ("dist/**", "src/dist.js", False),
            ("**/*.{ts,tsx}", "src/ui/App.tsx", True),
            ("**/*.{ts,tsx}", "src/ui/App.js", False),
            ("src/[ab].ts", "src/a.ts", True),
            ("src/[ab].ts", "src/c.ts", False),
            ("**/*.js", ".eslintrc.js", True),
        ],
    )
    def test_matches(self, pattern: str, path: str, expected: bool) -> None:
        assert GlobSet([pattern]).matches(path) is expected

    def test_or_semantics(self) -> None:
        globs = GlobSet(["dist/**", "build/**"])
        assert globs.matches("build/a.js")
        assert globs.matches("dist/a.js")
        assert not globs.matches("src/a.js")

    def test_empty_set_matches_nothing(self) -> None:
        globs = GlobSet([])
        assert not globs
        assert not globs.matches("a.ts")

    def test_select_and_reject_keep_order(self) -> None:
        globs = GlobSet(["**/*.test.ts"])
        files = ["b.test.ts", "a.ts", "c.test.ts"]
        assert globs.select(files) == ["b.test.ts", "c.test.ts"]
        assert globs.reject(files) == ["a.ts"]

    def test_leading_dot_slash_in_path(self) -> None:
        assert GlobSet(["src/*.ts"]).matches("./src/a.ts")


class TestPathMatchesGlobs:
    def test_empty_patterns_match_everything(self) -> None:
        assert path_matches_globs("anything/at/all.py", [])

    def test_patterns(self) -> None:
        assert path_matches_globs("src/a.py", ["src/*.py"])
        assert not path_matches_globs("lib/a.py", ["src/*.py"])


class TestEscapeGlob:
    def test_brackets_taken_literally(self) -> None:
        path = "app/[id]/page.tsx"
        assert not GlobSet([path]).matches(path)
        assert GlobSet([escape_glob(path)]).matches(path)

    def test_escaped_pattern_does_not_match_class_members(self) -> None:
        assert not GlobSet([escape_glob("app/[id]/page.tsx")]).matches("app/i/page.tsx")
