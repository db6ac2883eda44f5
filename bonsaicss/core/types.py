"""Data model shared by the scanner, cache, pruner and orchestrator."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Pattern, Set, Tuple, Union

from bonsaicss.core.patterns import PatternEntry


@dataclass
class FileScan:
    """Classes, dynamic patterns and origins found in one file."""

    classes: Set[str] = field(default_factory=set)
    dynamic_patterns: List[Pattern[str]] = field(default_factory=list)
    class_origins: Dict[str, Set[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def add_class(self, name: str, origin: Optional[str] = None) -> None:
        self.classes.add(name)
        if origin:
            self.class_origins.setdefault(name, set()).add(origin)

    def merge(self, other: "FileScan") -> None:
        """Union ``other`` into this scan in place."""
        self.classes.update(other.classes)
        self.dynamic_patterns.extend(other.dynamic_patterns)
        for name, origins in other.class_origins.items():
            self.class_origins.setdefault(name, set()).update(origins)
        self.warnings.extend(other.warnings)


@dataclass(frozen=True)
class ScanSummary:
    """Immutable result of scanning a whole project."""

    classes: FrozenSet[str] = frozenset()
    dynamic_patterns: Tuple[Pattern[str], ...] = ()
    files_scanned: int = 0
    class_origins: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: MappingProxyType({}))
    warnings: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "ScanSummary":
        return cls()

    @classmethod
    def from_classes(
        cls,
        classes: Iterable[str],
        dynamic_patterns: Iterable[Pattern[str]] = (),
    ) -> "ScanSummary":
        """Build a summary by hand, e.g. for pruning without a content scan."""
        return cls(classes=frozenset(classes), dynamic_patterns=tuple(dynamic_patterns))

    @classmethod
    def from_scan(cls, scan: FileScan, files_scanned: int) -> "ScanSummary":
        origins = {name: frozenset(values) for name, values in scan.class_origins.items()}
        return cls(
            classes=frozenset(scan.classes),
            dynamic_patterns=tuple(scan.dynamic_patterns),
            files_scanned=files_scanned,
            class_origins=MappingProxyType(origins),
            warnings=tuple(scan.warnings),
        )


@dataclass
class CacheEntry:
    """Persisted scan of one file, valid while its signature matches."""

    signature: str
    classes: List[str] = field(default_factory=list)
    dynamic_patterns: List[str] = field(default_factory=list)
    class_origins: Dict[str, List[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


@dataclass
class PruneStats:
    total_rules: int = 0
    removed_rules: int = 0
    kept_rules: int = 0
    original_size: int = 0
    pruned_size: int = 0


@dataclass(frozen=True)
class PruneResult:
    css: str
    stats: PruneStats
    removed_classes: List[str] = field(default_factory=list)
    kept_classes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExtractorContext:
    """Input handed to a custom extractor."""

    file_path: str
    source: str
    cwd: str


@dataclass
class ClassMatch:
    """A class found by a custom extractor, optionally with its line."""

    name: str
    line: Optional[int] = None
    type: Optional[str] = None


@dataclass
class ExtractorResult:
    classes: List[Union[str, ClassMatch]] = field(default_factory=list)
    dynamic_patterns: List[PatternEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


ExtractorCallable = Callable[[ExtractorContext], Union[ExtractorResult, Dict[str, Any], None]]


@dataclass
class ExtractorDefinition:
    """A named custom extractor.

    ``extract`` is either a compiled regex, whose capture groups (or whole
    match) are tokenized into classes, or a callable. ``test`` restricts the
    extractor to matching file paths and is either a regex or a predicate.
    """

    extract: Union[Pattern[str], ExtractorCallable, None]
    name: Optional[str] = None
    test: Union[Pattern[str], Callable[[str], bool], None] = None


Extractor = Union[ExtractorDefinition, ExtractorCallable]


@dataclass
class PrunerOptions:
    safelist: List[str] = field(default_factory=list)
    safelist_patterns: List[PatternEntry] = field(default_factory=list)
    keep_dynamic_patterns: Union[bool, List[PatternEntry]] = False
    minify: bool = False
    extractors: List[Extractor] = field(default_factory=list)


@dataclass
class ReportOptions:
    """Advanced report outputs. ``True`` writes to the default file name."""

    json: Union[bool, str] = False
    html: Union[bool, str] = False
    ci: Union[bool, str] = False

    @property
    def enabled(self) -> bool:
        return bool(self.json or self.html or self.ci)


@dataclass
class BonsaiOptions(PrunerOptions):
    content: List[str] = field(default_factory=list)
    css: Union[str, List[str]] = ""
    cwd: Optional[str] = None
    analyze: Union[bool, str] = False
    report: ReportOptions = field(default_factory=ReportOptions)
    cache_dir: Optional[str] = None


@dataclass(frozen=True)
class BonsaiReport:
    report_version: int
    generated_at: str
    cwd: str
    content_globs: List[str]
    stats: Dict[str, Any]
    classes: List[Dict[str, Any]]
    warnings: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reportVersion": self.report_version,
            "generatedAt": self.generated_at,
            "cwd": self.cwd,
            "contentGlobs": list(self.content_globs),
            "stats": dict(self.stats),
            "classes": list(self.classes),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class BonsaiResult(PruneResult):
    report: Optional[BonsaiReport] = None
