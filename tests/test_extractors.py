"""Tests for custom extractor normalization and execution."""

import re

import pytest

from bonsaicss.core.extractors import (
    ExtractorConfigError,
    normalize_extractors,
    regex_extractor,
    run_extractors,
)
from bonsaicss.core.types import ClassMatch, ExtractorContext, ExtractorDefinition, ExtractorResult


class TestNormalizeExtractors:
    def test_callable_gets_positional_name(self):
        (normalized,) = normalize_extractors([lambda ctx: None])
        assert normalized.name == "extractor:1"
        assert normalized.applies_to("anything.txt")

    def test_definition_keeps_name_and_test(self):
        definition = ExtractorDefinition(extract=re.compile("x"), name=" custom ", test=re.compile(r"\.md$"))
        (normalized,) = normalize_extractors([definition])
        assert normalized.name == "custom"
        assert normalized.applies_to("docs/readme.md")
        assert not normalized.applies_to("docs/readme.txt")

    def test_predicate_test(self):
        definition = ExtractorDefinition(extract=lambda ctx: None, test=lambda path: path.startswith("views/"))
        (normalized,) = normalize_extractors([definition])
        assert normalized.applies_to("views/a.liquid")
        assert not normalized.applies_to("src/a.liquid")

    def test_mapping_with_string_patterns(self):
        (normalized,) = normalize_extractors([{"name": "md", "test": r"\.md$", "extract": r'class="([^"]+)"'}])
        assert normalized.name == "md"
        result = normalized.extract(ExtractorContext(file_path="a.md", source='<b class="x y">', cwd="."))
        assert [match.name for match in result.classes] == ["x", "y"]

    def test_mapping_with_invalid_regex(self):
        with pytest.raises(ExtractorConfigError):
            normalize_extractors([{"extract": "("}])

    def test_missing_extract(self):
        with pytest.raises(ExtractorConfigError, match="second"):
            normalize_extractors([lambda ctx: None, ExtractorDefinition(extract=None, name="second")])

    def test_unsupported_type(self):
        with pytest.raises(ExtractorConfigError):
            normalize_extractors([42])

    def test_none(self):
        assert normalize_extractors(None) == []


class TestRegexExtractor:
    def test_whole_match_without_groups(self):
        extract = regex_extractor(re.compile(r"\bu-[a-z]+"))
        result = extract(ExtractorContext(file_path="a", source="u-red\nplain u-blue", cwd="."))
        assert [(m.name, m.line) for m in result.classes] == [("u-red", 1), ("u-blue", 2)]
        assert all(m.type == "literal" for m in result.classes)

    def test_all_groups_are_used(self):
        extract = regex_extractor(re.compile(r"(\w+)=(\w+)"))
        result = extract(ExtractorContext(file_path="a", source="left=right", cwd="."))
        assert [m.name for m in result.classes] == ["left", "right"]


class TestRunExtractors:
    def test_context_fields(self):
        seen = []

        def capture(context):
            seen.append(context)
            return None

        run_extractors("body", normalize_extractors([capture]), "src\\page.html", cwd="/project")
        assert seen[0].file_path == "src/page.html"
        assert seen[0].source == "body"
        assert seen[0].cwd == "/project"

    def test_inline_label(self):
        seen = []
        run_extractors("x", normalize_extractors([lambda ctx: seen.append(ctx.file_path)]))
        assert seen == ["<inline>"]

    def test_line_normalization(self):
        def extractor(context):
            return ExtractorResult(
                classes=[
                    ClassMatch("zero", line=0),
                    ClassMatch("nan", line=float("nan")),
                    ClassMatch("float", line=4.7),
                    "plain",
                    {"name": "mapped", "line": 2},
                ]
            )

        scan = run_extractors("x", normalize_extractors([extractor]), "f.txt")
        assert scan.class_origins == {
            "zero": {"f.txt:1"},
            "nan": {"f.txt:1"},
            "float": {"f.txt:4"},
            "plain": {"f.txt:1"},
            "mapped": {"f.txt:2"},
        }

    def test_class_entries_are_tokenized(self):
        scan = run_extractors("x", normalize_extractors([lambda ctx: {"classes": ["a b", "<bad>"]}]))
        assert scan.classes == {"a", "b"}

    def test_camel_case_dynamic_patterns_key(self):
        scan = run_extractors("x", normalize_extractors([lambda ctx: {"dynamicPatterns": ["^icon-", "/^ICON-/i"]}]))
        assert [p.pattern for p in scan.dynamic_patterns] == ["^icon-", "^ICON-"]

    def test_unsupported_result_is_a_warning(self):
        scan = run_extractors("x", normalize_extractors([lambda ctx: 42]))
        assert len(scan.warnings) == 1
        assert scan.warnings[0].startswith("[extractor:1] ")

    def test_failure_is_logged_and_later_extractors_run(self, caplog):
        def broken(context):
            raise ValueError("boom")

        scan = run_extractors("x", normalize_extractors([broken, lambda ctx: ["ignored"], lambda ctx: {"classes": ["ok"]}]))
        assert scan.classes == {"ok"}
        assert scan.warnings[0] == "[extractor:1] boom"
        assert "Extractor extractor:1 failed" in caplog.text
