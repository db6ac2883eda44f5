"""Prometheus metrics for scanning and pruning."""

from prometheus_client import Counter, Histogram

# Scan metrics
files_scanned_total = Counter('bonsai_files_scanned_total', 'Total number of content files scanned')

scan_cache_hits_total = Counter('bonsai_scan_cache_hits_total', 'Total scan cache hits', ['cache_type'])

scan_cache_misses_total = Counter('bonsai_scan_cache_misses_total', 'Total scan cache misses', ['cache_type'])

extractor_errors_total = Counter(
    'bonsai_extractor_errors_total',
    'Total number of custom extractor failures',
    ['extractor'],
)

# Prune metrics
rules_total = Counter('bonsai_rules_total', 'Total number of CSS rules visited by the pruner')

rules_removed_total = Counter('bonsai_rules_removed_total', 'Total number of CSS rules removed')

prune_duration_seconds = Histogram(
    'bonsai_prune_duration_seconds',
    'CSS prune duration in seconds',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)

css_parse_failures_total = Counter(
    'bonsai_css_parse_failures_total',
    'Total number of stylesheets that could not be parsed and were left untouched',
)
