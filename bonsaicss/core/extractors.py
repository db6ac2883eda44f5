"""User-supplied class extractors that replace the built-in heuristics."""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Pattern, Union

from bonsaicss.core.patterns import (
    create_line_resolver,
    dedupe_regex,
    normalize_slashes,
    parse_pattern_entries,
    tokenize_class_list,
)
from bonsaicss.core.types import (
    ClassMatch,
    Extractor,
    ExtractorCallable,
    ExtractorContext,
    ExtractorDefinition,
    ExtractorResult,
    FileScan,
)
from bonsaicss.telemetry.metrics import extractor_errors_total

logger = logging.getLogger(__name__)

PathMatcher = Union[Pattern[str], Callable[[str], bool], None]


class ExtractorConfigError(ValueError):
    """Raised for an extractor definition that cannot be used."""


@dataclass(frozen=True)
class NormalizedExtractor:
    name: str
    extract: ExtractorCallable
    test: PathMatcher = None

    def applies_to(self, file_path: str) -> bool:
        if self.test is None:
            return True
        if isinstance(self.test, re.Pattern):
            return self.test.search(file_path) is not None
        return bool(self.test(file_path))


def regex_extractor(pattern: Pattern[str]) -> ExtractorCallable:
    """Wrap a regex into an extractor.

    Every capture group of every match is tokenized into classes (the whole
    match when the pattern has no groups), each tagged with its line.
    """

    def extract(context: ExtractorContext) -> ExtractorResult:
        classes: List[Union[str, ClassMatch]] = []
        resolve_line = create_line_resolver(context.source)
        for match in pattern.finditer(context.source):
            if pattern.groups:
                captures = [group for group in match.groups() if group is not None]
            else:
                captures = [match.group(0)]
            line = resolve_line(match.start())
            for capture in captures:
                for name in tokenize_class_list(capture):
                    classes.append(ClassMatch(name=name, line=line, type="literal"))
        return ExtractorResult(classes=classes)

    return extract


def _as_pattern(value: Any, field_name: str, name: str) -> Any:
    if isinstance(value, str):
        try:
            return re.compile(value)
        except re.error as exc:
            raise ExtractorConfigError(f"Extractor {name!r} has an invalid {field_name} pattern: {exc}") from exc
    return value


def _normalize(extractor: Extractor, index: int) -> NormalizedExtractor:
    default_name = f"extractor:{index}"

    if isinstance(extractor, Mapping):
        name = str(extractor.get("name") or "").strip() or default_name
        extractor = ExtractorDefinition(
            extract=_as_pattern(extractor.get("extract"), "extract", name),
            name=name,
            test=_as_pattern(extractor.get("test"), "test", name),
        )

    if isinstance(extractor, ExtractorDefinition):
        name = (extractor.name or "").strip() or default_name
        if extractor.extract is None:
            raise ExtractorConfigError(f"Extractor {name!r} must provide an extract strategy.")
        if isinstance(extractor.extract, re.Pattern):
            extract = regex_extractor(extractor.extract)
        elif callable(extractor.extract):
            extract = extractor.extract
        else:
            raise ExtractorConfigError(f"Extractor {name!r} has an unsupported extract strategy.")
        return NormalizedExtractor(name=name, extract=extract, test=extractor.test)

    if callable(extractor):
        return NormalizedExtractor(name=default_name, extract=extractor)

    raise ExtractorConfigError(f"Unsupported extractor at position {index}: {extractor!r}")


def normalize_extractors(extractors: Optional[Iterable[Extractor]]) -> List[NormalizedExtractor]:
    """Validate and normalize extractor definitions.

    Raises:
        ExtractorConfigError: for a definition without an ``extract`` strategy
            or of an unsupported type.
    """
    return [_normalize(extractor, index) for index, extractor in enumerate(extractors or [], start=1)]


def _normalize_line(line: Any) -> int:
    if isinstance(line, bool) or not isinstance(line, (int, float)) or not math.isfinite(line):
        return 1
    return max(1, int(line))


def _coerce_result(result: Any) -> Optional[ExtractorResult]:
    if result is None or isinstance(result, ExtractorResult):
        return result
    if isinstance(result, Mapping):
        return ExtractorResult(
            classes=list(result.get("classes") or []),
            dynamic_patterns=list(result.get("dynamic_patterns") or result.get("dynamicPatterns") or []),
            warnings=list(result.get("warnings") or []),
        )
    raise TypeError(f"unsupported extractor result {type(result).__name__}")


def _apply_result(result: ExtractorResult, source_label: Optional[str], scan: FileScan) -> None:
    for entry in result.classes:
        if isinstance(entry, str):
            name, line = entry, 1
        elif isinstance(entry, ClassMatch):
            name, line = entry.name, _normalize_line(entry.line)
        elif isinstance(entry, Mapping):
            name, line = str(entry.get("name", "")), _normalize_line(entry.get("line"))
        else:
            continue
        origin = f"{source_label}:{line}" if source_label else None
        for token in tokenize_class_list(name):
            scan.add_class(token, origin)

    scan.dynamic_patterns.extend(parse_pattern_entries(result.dynamic_patterns))


def run_extractors(
    content: str,
    extractors: List[NormalizedExtractor],
    source_label: Optional[str] = None,
    cwd: str = ".",
) -> FileScan:
    """Run custom extractors over one file and merge their results.

    A failing extractor turns into a ``[name] message`` warning and the next
    one still runs.
    """
    scan = FileScan()
    file_path = normalize_slashes(source_label or "<inline>")
    context = ExtractorContext(file_path=file_path, source=content, cwd=cwd)

    for extractor in extractors:
        try:
            if not extractor.applies_to(file_path):
                continue
            result = _coerce_result(extractor.extract(context))
        except Exception as exc:
            logger.warning("Extractor %s failed on %s: %s", extractor.name, file_path, exc)
            extractor_errors_total.labels(extractor=extractor.name).inc()
            scan.warnings.append(f"[{extractor.name}] {exc}")
            continue

        if result is None:
            continue
        scan.warnings.extend(f"[{extractor.name}] {warning}" for warning in result.warnings)
        _apply_result(result, source_label, scan)

    scan.dynamic_patterns = dedupe_regex(scan.dynamic_patterns)
    return scan
