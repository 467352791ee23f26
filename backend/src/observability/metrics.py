"""Prometheus metrics for the visual search backend.

Defines and exposes operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Histogram

# Indexing metrics
indexing_runs_total = Counter(
    "snapsearch_indexing_runs_total",
    "Total indexing runs by final outcome",
    ["status"]  # status: completed|failed
)

indexing_chunks_total = Counter(
    "snapsearch_indexing_chunks_total",
    "Total chunks dispatched to the embedding service",
    ["status"]  # status: success|error
)

indexing_run_duration_seconds = Histogram(
    "snapsearch_indexing_run_duration_seconds",
    "Wall-clock duration of full-catalog indexing runs",
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1800]
)

# Search metrics
image_searches_total = Counter(
    "snapsearch_image_searches_total",
    "Total image search requests",
    ["status"]  # status: success|no_match|error
)

image_search_duration_seconds = Histogram(
    "snapsearch_image_search_duration_seconds",
    "Image search latency in seconds (embedding call joined with catalog read)",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Embedding service metrics
embedding_service_calls_total = Counter(
    "snapsearch_embedding_service_calls_total",
    "Total calls to the embedding service",
    ["operation", "status"]  # status: success|error|timeout
)

# Prompt image metrics
prompt_image_generations_total = Counter(
    "snapsearch_prompt_image_generations_total",
    "Total prompt-to-image generations",
    ["status"]  # status: success|error
)
