"""Tests for the content scanner heuristics and custom extractor dispatch."""

import re

import pytest

from bonsaicss.core.extractors import ExtractorConfigError
from bonsaicss.core.scanner import (
    analyze_expression,
    collect_const_map,
    derive_dynamic_patterns,
    parse_safelist_patterns,
    scan_content,
    scan_files,
)
from bonsaicss.core.types import (
    ClassMatch,
    ExtractorDefinition,
    ExtractorResult,
    PrunerOptions,
)


def classes_of(content, **kwargs):
    return scan_content(content, **kwargs).classes


class TestStaticAttributes:
    """Literal class and className attributes."""

    def test_html_class_attribute(self):
        assert classes_of('<div class="foo bar baz">x</div>') == {"foo", "bar", "baz"}

    def test_jsx_class_name_string(self):
        assert classes_of('<div className="container mx-auto" />') == {"container", "mx-auto"}

    def test_single_quoted_attribute(self):
        assert classes_of("<span class='a-b c_d'></span>") == {"a-b", "c_d"}

    def test_plain_text_has_no_classes(self):
        assert classes_of("Hello, world!") == set()

    def test_tailwind_variants_survive_tokenizing(self):
        found = classes_of('<div class="sm:grid md:w-1/2 hover:bg-blue-500"></div>')
        assert found == {"sm:grid", "md:w-1/2", "hover:bg-blue-500"}


class TestFrameworkSyntax:
    """Framework directives and expression attributes."""

    def test_svelte_class_directive(self):
        found = classes_of("<div class:active={isActive} class:hidden={!show}>x</div>")
        assert found == {"active", "hidden"}

    def test_angular_class_binding(self):
        found = classes_of('<div [class.active]="isActive" [class.hidden]="!show"></div>')
        assert found == {"active", "hidden"}

    def test_jsx_expression_string(self):
        assert classes_of('<div className={"bg-red-500"} />') == {"bg-red-500"}

    def test_vue_object_binding(self):
        found = classes_of("<div :class=\"{ active: isActive, 'text-bold': isBold }\"></div>")
        assert found == {"active", "text-bold"}

    def test_astro_class_list(self):
        source = '<div class:list={["card", isActive && "card--active", { "is-open": open }]}></div>'
        assert classes_of(source) == {"card", "card--active", "is-open"}

    def test_solid_class_list_object(self):
        source = '<div classList={{ "btn": true, "btn-primary": isPrimary, active: on }} />'
        assert classes_of(source) == {"btn", "btn-primary", "active"}

    def test_blade_class_directive(self):
        source = "<div @class(['btn', 'btn-primary' => $primary, 'is-open' => $open])></div>"
        assert classes_of(source) == {"btn", "btn-primary", "is-open"}

    def test_rails_class_names_helper(self):
        source = '<%= tag.div class: class_names("card", { "card--active": active }, maybeClass) %>'
        assert classes_of(source) == {"card", "card--active"}

    def test_rails_class_keyword_string(self):
        assert classes_of('<%= link_to "Home", root_path, class: "nav-link active" %>') == {"nav-link", "active"}


class TestScriptCalls:
    """DOM and helper calls in plain scripts."""

    def test_class_list_add(self):
        assert classes_of("el.classList.add('foo', 'bar');") == {"foo", "bar"}

    def test_class_list_replace(self):
        assert classes_of("el.classList.replace('old-style', 'new-style');") == {"old-style", "new-style"}

    def test_clsx_mixed_arguments(self):
        source = "const c = clsx('base', isActive && 'active', { hidden: isHidden });"
        assert {"base", "active", "hidden"} <= classes_of(source)

    def test_jquery_helpers(self):
        assert classes_of("$(el).addClass('is-visible'); $(el).removeClass('is-hidden');") == {
            "is-visible",
            "is-hidden",
        }

    def test_renderer_uses_second_argument_only(self):
        assert classes_of("this.renderer.addClass(this.el, 'focused');") == {"focused"}

    def test_const_resolution(self):
        source = "const baseClass = 'container';\nelement.classList.add(baseClass);"
        assert "container" in classes_of(source)

    def test_set_attribute_class(self):
        assert classes_of("el.setAttribute('class', 'modal open');") == {"modal", "open"}


class TestOrigins:
    def test_origins_use_label_and_line(self):
        scan = scan_content('<div class="a">\n<span class="b"></span></div>', source_label="src/app.html")
        assert scan.class_origins["a"] == {"src/app.html:1"}
        assert scan.class_origins["b"] == {"src/app.html:2"}

    def test_origin_format(self):
        scan = scan_content('<div class="foo bar"></div>', source_label="src/app.html")
        for origins in scan.class_origins.values():
            for origin in origins:
                assert re.match(r"^src/app\.html:\d+$", origin)

    def test_no_label_no_origins(self):
        scan = scan_content('<div class="foo"></div>')
        assert scan.classes == {"foo"}
        assert scan.class_origins == {}


class TestDynamicPatterns:
    def test_concatenation_yields_prefix(self):
        patterns = derive_dynamic_patterns("'btn-' + size")
        assert [p.pattern for p in patterns] == ["^btn\\-"]

    def test_template_literal_yields_prefix(self):
        patterns = derive_dynamic_patterns("`text-${color}`")
        assert len(patterns) == 1
        assert patterns[0].search("text-red")

    def test_plain_string_yields_nothing(self):
        assert derive_dynamic_patterns("'btn-'") == []

    def test_patterns_only_when_enabled(self):
        source = "<div className={'btn-' + size} />"
        assert scan_content(source).dynamic_patterns == []
        enabled = scan_content(source, PrunerOptions(keep_dynamic_patterns=True))
        assert any(p.search("btn-large") for p in enabled.dynamic_patterns)

    def test_template_literal_in_jsx_attribute(self):
        source = "<div className={`card card-${size}`}>x</div>"
        scan = scan_content(source, PrunerOptions(keep_dynamic_patterns=True), source_label="f.tsx")

        assert "card" in scan.classes
        assert scan.class_origins["card"] == {"f.tsx:1"}
        assert [p.pattern for p in scan.dynamic_patterns] == ["^card\\-"]
        assert scan.dynamic_patterns[0].search("card-lg")

    def test_nested_braces_in_expression_attribute(self):
        source = '<div class={cn("panel", { "panel--open": open }, `tone-${tone}`)}></div>'
        assert {"panel", "panel--open"} <= classes_of(source)

    def test_analyze_expression_collects_keys_and_constants(self):
        tokens, patterns = analyze_expression("{ open: isOpen }, base", {"base": ["root"]}, False)
        assert tokens == ["open", "root"]
        assert patterns == []

    def test_const_map_template_statics(self):
        const_map = collect_const_map("const cls = `card ${extra}`;")
        assert const_map == {"cls": ["card"]}


class TestCustomExtractors:
    """Extractors replace the heuristics entirely."""

    def test_callable_extractor_replaces_heuristics(self):
        def extractor(context):
            return {"classes": [ClassMatch("from-extractor", line=3)]}

        scan = scan_content(
            '<div class="ignored"></div>',
            PrunerOptions(extractors=[extractor]),
            source_label="app.tsx",
        )
        assert scan.classes == {"from-extractor"}
        assert scan.class_origins["from-extractor"] == {"app.tsx:3"}

    def test_extractor_dynamic_patterns(self):
        def extractor(context):
            return ExtractorResult(classes=["btn"], dynamic_patterns=["^btn-"])

        scan = scan_content("x", PrunerOptions(extractors=[extractor]))
        assert [p.pattern for p in scan.dynamic_patterns] == ["^btn-"]

    def test_regex_definition_with_test(self):
        liquid = ExtractorDefinition(
            name="liquid-class",
            test=re.compile(r"\.liquid$"),
            extract=re.compile(r'class="([^"]+)"'),
        )
        source = '<a class="btn btn-primary">Go</a>\n<span class="chip"></span>'
        scan = scan_content(source, PrunerOptions(extractors=[liquid]), source_label="views/page.liquid")
        assert scan.classes == {"btn", "btn-primary", "chip"}
        assert scan.class_origins["btn"] == {"views/page.liquid:1"}
        assert scan.class_origins["chip"] == {"views/page.liquid:2"}

    def test_non_matching_test_does_not_fall_back(self):
        liquid = ExtractorDefinition(test=re.compile(r"\.liquid$"), extract=re.compile(r'class="([^"]+)"'))
        scan = scan_content('<div class="btn"></div>', PrunerOptions(extractors=[liquid]), source_label="a.html")
        assert scan.classes == set()

    def test_failing_extractor_becomes_warning(self):
        def broken(context):
            raise RuntimeError("extractor boom")

        def noisy(context):
            return ExtractorResult(classes=["ok"], warnings=["custom warning"])

        scan = scan_content("x", PrunerOptions(extractors=[broken, noisy]))
        assert scan.classes == {"ok"}
        assert any("extractor boom" in w and w.startswith("[extractor:1]") for w in scan.warnings)
        assert any("custom warning" in w and w.startswith("[extractor:2]") for w in scan.warnings)

    def test_definition_without_extract_is_rejected(self):
        with pytest.raises(ExtractorConfigError):
            scan_content("x", PrunerOptions(extractors=[ExtractorDefinition(extract=None, name="empty")]))


class TestScanFiles:
    def test_merges_files_and_safelist(self, make_project):
        root = make_project({"a.html": '<div class="a"></div>', "b.html": '<div class="b"></div>'})
        summary = scan_files(
            [str(root / "a.html"), str(root / "b.html")],
            PrunerOptions(safelist=["keep-me"]),
            cwd=str(root),
        )
        assert summary.classes == frozenset({"a", "b", "keep-me"})
        assert summary.files_scanned == 2
        assert summary.class_origins["b"] == frozenset({"b.html:1"})

    def test_missing_file_is_skipped(self, make_project):
        root = make_project({"a.html": '<div class="a"></div>'})
        summary = scan_files([str(root / "a.html"), str(root / "gone.html")], cwd=str(root))
        assert summary.classes == frozenset({"a"})
        assert summary.files_scanned == 1

    def test_explicit_dynamic_patterns_are_added(self, make_project):
        root = make_project({"a.html": "<p></p>"})
        summary = scan_files(
            [str(root / "a.html")],
            PrunerOptions(keep_dynamic_patterns=["^icon-", "/^ICON-/i", "^icon-"]),
            cwd=str(root),
        )
        assert [p.pattern for p in summary.dynamic_patterns] == ["^icon-", "^ICON-"]


class TestParseSafelistPatterns:
    def test_string_and_compiled_entries(self):
        patterns = parse_safelist_patterns(["^modal-", re.compile("^tooltip")])
        assert [p.pattern for p in patterns] == ["^modal-", "^tooltip"]

    def test_none_yields_empty(self):
        assert parse_safelist_patterns(None) == []
