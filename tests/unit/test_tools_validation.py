"""Tests for snippet validation and template generation."""

from __future__ import annotations

import pytest

from toolforge.config.schema import SandboxConfig, ToolforgeConfig
from toolforge.tools.signature import extract_signature
from toolforge.tools.validation import generate_template, validate_snippet

GOOD = """
async function lookup({ term }) {
  try {
    const response = await fetch('https://api.example.com/?q=' + term);
    return await response.json();
  } catch (error) {
    return { error: error.message };
  }
}
"""


class TestValidateSnippet:
    def test_good_snippet(self) -> None:
        report = validate_snippet(GOOD)
        assert report.valid
        assert report.errors == []
        assert report.warnings == []
        assert report.function_name == "lookup"
        assert report.parameters == ("term",)
        assert report.uses_fetch is True
        assert report.uses_timers is False

    def test_no_function(self) -> None:
        report = validate_snippet("const f = (x) => x;")
        assert not report.valid
        assert any("named function" in e for e in report.errors)

    def test_two_functions(self) -> None:
        code = "function a() { return 1; }\nfunction b() { return 2; }"
        report = validate_snippet(code)
        assert any("exactly one" in e for e in report.errors)

    def test_imports_listed_as_dependencies(self) -> None:
        code = (
            "import axios from 'axios';\n"
            "import { z } from \"zod/v4\";\n"
            "const fs = require('fs');\n"
            "const local = require('./local');\n"
            "import x from '@scope/pkg/sub';\n"
            "function f({ a }) { try { return a; } catch (e) { return null; } }"
        )
        report = validate_snippet(code)
        assert not report.valid
        assert report.dependencies == ["axios", "zod", "fs", "@scope/pkg"]
        assert any("cannot be imported" in e for e in report.errors)

    def test_method_named_require_ignored(self) -> None:
        code = "function f({ a }) { try { return a.require('x'); } catch (e) { return 1; } }"
        report = validate_snippet(code)
        assert report.dependencies == []
        assert report.valid

    def test_syntax_error(self) -> None:
        report = validate_snippet("function f({ a }) { return a + ; }")
        assert not report.valid
        assert any(e.startswith("Syntax error") for e in report.errors)

    def test_typescript_is_not_a_syntax_error(self) -> None:
        code = (
            "interface P { a: string }\n"
            "export function f({ a }: P): string { try { return a; } catch (e) { return ''; } }"
        )
        assert validate_snippet(code).valid

    def test_snippet_is_not_executed(self) -> None:
        code = "function f() { try { while (true) {} } catch (e) {} return 1; }"
        assert validate_snippet(code).valid

    def test_oversize(self) -> None:
        config = ToolforgeConfig(sandbox=SandboxConfig(max_code_bytes=10))
        report = validate_snippet("function f() { return 1; }", config)
        assert report.errors == ["Tool code exceeds 10 bytes"]

    def test_fetch_without_async_warns(self) -> None:
        code = "function f({ u }) { try { return fetch(u); } catch (e) { return null; } }"
        report = validate_snippet(code)
        assert report.valid
        assert "Function uses fetch but is not async" in report.warnings

    def test_missing_try_and_return_warn(self) -> None:
        report = validate_snippet("function f({ a }) { console.log(a); }")
        assert report.valid
        assert len(report.warnings) == 2

    def test_unrecognized_signature_warns(self) -> None:
        code = "function f([a]) { try { return a; } catch (e) { return 1; } }"
        report = validate_snippet(code)
        assert any("could not be recognised" in w for w in report.warnings)

    def test_empty_parameter_list_not_flagged(self) -> None:
        report = validate_snippet("function f() { try { return 1; } catch (e) { return 2; } }")
        assert report.parameters == ()
        assert report.warnings == []

    def test_rest_only_parameters_warn(self) -> None:
        code = "function f(...args) { try { return args; } catch (e) { return 1; } }"
        report = validate_snippet(code)
        assert any("could not be recognised" in w for w in report.warnings)

    def test_timers_detected(self) -> None:
        code = "function f() { try { return new Promise((r) => setTimeout(r, 1)); } catch (e) {} }"
        assert validate_snippet(code).uses_timers is True

    def test_keywords_in_strings_ignored(self) -> None:
        code = "function f() { const s = 'try return fetch('; console.log(s); }"
        report = validate_snippet(code)
        assert report.uses_fetch is False
        assert len(report.warnings) == 2


class TestGenerateTemplate:
    @pytest.mark.parametrize("uses_fetch", [False, True])
    def test_template_validates(self, uses_fetch: bool) -> None:
        code = generate_template("Weather Lookup", "Look up the weather", uses_fetch=uses_fetch)
        report = validate_snippet(code)
        assert report.valid, report.errors
        assert report.warnings == []
        assert report.uses_fetch is uses_fetch

    def test_destructured_parameter(self) -> None:
        code = generate_template("weather-lookup", "")
        sig = extract_signature(code)
        assert sig.function_name == "weatherLookup"
        assert sig.parameters == ("input",)

    def test_description_in_comment(self) -> None:
        assert " * Say hello" in generate_template("hello", "Say hello")

    @pytest.mark.parametrize(("name", "expected"), [("!!!", "tool"), ("9 lives", "tool9Lives")])
    def test_function_name_is_identifier(self, name: str, expected: str) -> None:
        assert extract_signature(generate_template(name, "")).function_name == expected

    def test_comment_terminator_in_description_escaped(self) -> None:
        code = generate_template("glob", "Match src/**/*.py files */ then stop")
        report = validate_snippet(code)
        assert report.valid, report.errors
        assert "*\\/ then stop" in code

    def test_multiline_description(self) -> None:
        code = generate_template("notes", "First line\nSecond line")
        assert " * First line\n * Second line\n */" in code
        assert validate_snippet(code).valid
