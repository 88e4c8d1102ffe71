"""Trigger detection.

Recognizes resolution requests in free-form text:
- a single GitHub issue URL
- "resolve issues from <url> ..." batches
- "resolve issues in <owner>/<repo>" repository-wide requests
"""

from issue_resolver.trigger.detector import (
    DEFAULT_MATCHERS,
    DetectionResult,
    DetectionStatus,
    TriggerDetector,
    extract_issue_references,
    match_batch_phrase,
    match_issue_url,
    match_repository_phrase,
)
from issue_resolver.trigger.models import (
    BatchRequest,
    IssueReference,
    RepoWideRequest,
    RequestKind,
    SingleIssueRequest,
    TriggerRequest,
)

__all__ = [
    # Detector
    "DEFAULT_MATCHERS",
    "DetectionResult",
    "DetectionStatus",
    "TriggerDetector",
    "extract_issue_references",
    "match_batch_phrase",
    "match_issue_url",
    "match_repository_phrase",
    # Models
    "BatchRequest",
    "IssueReference",
    "RepoWideRequest",
    "RequestKind",
    "SingleIssueRequest",
    "TriggerRequest",
]
