"""Indexing metrics leveraging Prometheus client."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from prometheus_client import Counter, Histogram

documents_total = Counter(
    "cloudsearch_writer_documents_total",
    "Documents handled by the index writer",
    ["operation", "outcome"],
)

document_latency_seconds = Histogram(
    "cloudsearch_writer_document_latency_seconds",
    "Time spent submitting a document to Cloud Search",
    ["operation"],
)

document_bytes = Histogram(
    "cloudsearch_writer_document_bytes",
    "Size of content payloads sent to Cloud Search",
    buckets=(1_024, 10_240, 102_400, 1_048_576, 10_485_760, 104_857_600),
)


@dataclass
class IndexingStats:
    """Per-writer outcome counts, reported when the writer closes."""

    indexed: int = 0
    failed: int = 0
    rejected: int = 0
    deleted: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def observe_document(operation: str, outcome: str, duration_seconds: float | None = None) -> None:
    documents_total.labels(operation=operation, outcome=outcome).inc()
    if duration_seconds is not None:
        document_latency_seconds.labels(operation=operation).observe(duration_seconds)


def observe_payload_size(size: int) -> None:
    document_bytes.observe(size)
