from dashboard.src.services.github import (
    verify_signature,
    sign_payload,
    parse_webhook_payload,
    GitHubClient,
    GitHubAPIError,
    ConfigurationError,
    TransportError,
    UpstreamError,
    fetch_jobs_with_attempts,
)
from dashboard.src.services.reconciler import (
    upsert_commit,
    upsert_pipeline,
    insert_jobs,
    ReconciliationError,
)
from dashboard.src.services.timestamps import (
    parse_timestamp,
    normalize_timestamps,
)
from dashboard.src.services.views import (
    list_pipelines,
    get_pipeline_detail,
    group_jobs,
    format_duration,
)

__all__ = [
    "verify_signature",
    "sign_payload",
    "parse_webhook_payload",
    "GitHubClient",
    "GitHubAPIError",
    "ConfigurationError",
    "TransportError",
    "UpstreamError",
    "fetch_jobs_with_attempts",
    "upsert_commit",
    "upsert_pipeline",
    "insert_jobs",
    "ReconciliationError",
    "parse_timestamp",
    "normalize_timestamps",
    "list_pipelines",
    "get_pipeline_detail",
    "group_jobs",
    "format_duration",
]
