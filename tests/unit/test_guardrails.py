from __future__ import annotations

import pytest

from palace_index.guardrails import (
    DEFAULT_DO_NOT_TOUCH_GLOBS,
    Guardrails,
    matches_guardrail,
    merge_globs,
    normalize_glob,
)


def test_normalize_glob():
    assert normalize_glob(None) == ""
    assert normalize_glob("   ") == ""
    assert normalize_glob(" src\\gen//**/*.py ") == "src/gen/**/*.py"


def test_merge_globs_keeps_order_and_drops_duplicates():
    merged = merge_globs(["a/**", "b/**"], None, ["b/**", " a\\** ", "", "c/*.txt"])
    assert merged == ("a/**", "b/**", "c/*.txt")


def test_with_defaults_appends_user_globs():
    guardrails = Guardrails.with_defaults(["secrets/**", ".git/**"], ["docs/**"])
    assert guardrails.do_not_touch_globs[: len(DEFAULT_DO_NOT_TOUCH_GLOBS)] == (
        DEFAULT_DO_NOT_TOUCH_GLOBS
    )
    assert guardrails.do_not_touch_globs[-1] == "secrets/**"
    assert guardrails.do_not_touch_globs.count(".git/**") == 1
    assert guardrails.read_only_globs == ("docs/**",)


@pytest.mark.parametrize(
    "path",
    [
        ".git/config",
        ".palace/index/palace.db",
        "node_modules/left-pad/index.js",
        "packages/app/build/output.js",
        "web/assets/app.min.js",
        "Cargo.lock",
        "deep/nested/yarn.lock",
        "lib/model.g.dart",
        "ios/Pods/Thing/file.m",
        "src/.DS_Store",
    ],
)
def test_default_guardrails_match(path):
    assert Guardrails.defaults().matches(path)


@pytest.mark.parametrize(
    "path",
    ["main.go", "src/app.py", "docs/build.md", "vendored/file.go", "lockfile.txt"],
)
def test_default_guardrails_do_not_match(path):
    assert not Guardrails.defaults().matches(path)


def test_directories_match_their_contents_glob():
    guardrails = Guardrails.defaults()
    assert guardrails.matches(".git", is_dir=True)
    assert guardrails.matches("node_modules", is_dir=True)
    assert guardrails.matches("pkg/build", is_dir=True)
    assert not guardrails.matches("src", is_dir=True)


def test_slash_free_glob_is_anchored_to_root():
    guardrails = Guardrails(do_not_touch_globs=("*.log",))
    assert guardrails.matches("debug.log")
    assert not guardrails.matches("logs/debug.log")


def test_read_only_globs_are_exclusionary():
    guardrails = Guardrails(read_only_globs=("generated/**",))
    assert guardrails.matches("generated/api.py")
    assert not guardrails.matches("src/api.py")


def test_matches_normalizes_candidate_paths():
    guardrails = Guardrails(do_not_touch_globs=("secrets/**",))
    assert guardrails.matches("./secrets/key.pem")
    assert guardrails.matches("secrets\\key.pem")
    assert guardrails.matches("/secrets/key.pem")
    assert not guardrails.matches("")


def test_matches_guardrail_accepts_none():
    assert not matches_guardrail(".git/config", None)
    assert matches_guardrail(".git/config", Guardrails.defaults())
