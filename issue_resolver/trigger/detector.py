"""Trigger detection for free-form resolution requests.

Classifies raw input text into a typed resolution request. Detection runs
an ordered list of independent matcher functions; the first matcher that
returns a request wins:

1. match_batch_phrase: "resolve issues from <url> <url> ..."
2. match_issue_url: the first GitHub issue URL in the text
3. match_repository_phrase: "resolve issues in <owner>/<repo>"

A matcher that raises never crashes detection: the failure is reported as
an internal-error DetectionResult so callers can tell "nothing recognized"
apart from "recognizer misbehaved".
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

import structlog

from issue_resolver.trigger.models import (
    BatchRequest,
    IssueReference,
    RepoWideRequest,
    SingleIssueRequest,
    TriggerRequest,
)


logger = structlog.get_logger(__name__)


ISSUE_URL_PATTERN = re.compile(
    r"https?://github\.com/([^/\s]+)/([^/\s]+)/issues/(\d+)"
)
BATCH_PHRASE_PATTERN = re.compile(r"resolve\s+issues?\s+from\s+(.*)", re.IGNORECASE)
REPOSITORY_PHRASE_PATTERN = re.compile(
    r"resolve\s+issues?\s+in\s+([^/\s]+)/([^/\s]+)", re.IGNORECASE
)

Matcher = Callable[[str], Optional[TriggerRequest]]


class DetectionStatus(str, Enum):
    """Outcome category of a detection attempt."""

    DETECTED = "detected"
    NOT_DETECTED = "not_detected"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class DetectionResult:
    """Result of running trigger detection over one input.

    Attributes:
        status: Whether a request was detected, nothing matched, or a
            matcher failed.
        request: The detected request when status is DETECTED.
        reason: Failure description when status is INTERNAL_ERROR.
    """

    status: DetectionStatus
    request: Optional[TriggerRequest] = None
    reason: Optional[str] = None

    @classmethod
    def detected(cls, request: TriggerRequest) -> "DetectionResult":
        return cls(status=DetectionStatus.DETECTED, request=request)

    @classmethod
    def not_detected(cls) -> "DetectionResult":
        return cls(status=DetectionStatus.NOT_DETECTED)

    @classmethod
    def internal_error(cls, reason: str) -> "DetectionResult":
        return cls(status=DetectionStatus.INTERNAL_ERROR, reason=reason)

    @property
    def is_detected(self) -> bool:
        return self.status == DetectionStatus.DETECTED


def extract_issue_references(text: str) -> List[IssueReference]:
    """Return every GitHub issue URL in ``text`` as references, in order."""
    return [
        IssueReference(
            owner=match.group(1),
            repo=match.group(2),
            issue_number=int(match.group(3)),
            issue_url=match.group(0),
        )
        for match in ISSUE_URL_PATTERN.finditer(text)
    ]


def match_batch_phrase(text: str) -> Optional[TriggerRequest]:
    """Match "resolve issues from ..." followed by at least one issue URL."""
    match = BATCH_PHRASE_PATTERN.search(text)
    if match is None:
        return None

    issue_list = extract_issue_references(match.group(1))
    if not issue_list:
        return None

    logger.info("Detected batch resolution request", issue_count=len(issue_list))
    return BatchRequest(issue_list=tuple(issue_list))


def match_issue_url(text: str) -> Optional[TriggerRequest]:
    """Match the first GitHub issue URL; later URLs are ignored."""
    match = ISSUE_URL_PATTERN.search(text)
    if match is None:
        return None

    request = SingleIssueRequest(
        owner=match.group(1),
        repo=match.group(2),
        issue_number=int(match.group(3)),
        issue_url=match.group(0),
    )
    logger.info("Detected GitHub issue", issue_id=request.issue_id)
    return request


def match_repository_phrase(text: str) -> Optional[TriggerRequest]:
    """Match "resolve issues in <owner>/<repo>"."""
    match = REPOSITORY_PHRASE_PATTERN.search(text)
    if match is None:
        return None

    request = RepoWideRequest(owner=match.group(1), repo=match.group(2))
    logger.info(
        "Detected repository-wide resolution request",
        repository=request.full_repository,
    )
    return request


DEFAULT_MATCHERS: Sequence[Matcher] = (
    match_batch_phrase,
    match_issue_url,
    match_repository_phrase,
)


def _extract_text(payload: Any) -> str:
    """Pull the text out of a string, a {"text": ...} mapping or an object."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        text = payload.get("text")
    else:
        text = getattr(payload, "text", None)
    return text if isinstance(text, str) else ""


class TriggerDetector:
    """Classifies input text into resolution requests.

    Attributes:
        matchers: Matcher functions tried in priority order.

    Example:
        >>> detector = TriggerDetector()
        >>> result = detector.detect("Fix https://github.com/foo/bar/issues/42")
        >>> result.request.issue_number
        42
    """

    def __init__(self, matchers: Sequence[Matcher] = DEFAULT_MATCHERS):
        self.matchers = list(matchers)

    def detect(self, payload: Any) -> DetectionResult:
        """Classify raw text or a record carrying a ``text`` field.

        Empty input is not an error: it yields NOT_DETECTED.
        """
        try:
            text = _extract_text(payload)
            if not text:
                logger.debug("No text content in input")
                return DetectionResult.not_detected()

            for matcher in self.matchers:
                request = matcher(text)
                if request is not None:
                    return DetectionResult.detected(request)
        except Exception as e:
            logger.error(
                "Error in trigger detection",
                error=str(e),
                error_type=type(e).__name__,
            )
            return DetectionResult.internal_error(f"{type(e).__name__}: {e}")

        logger.debug("No resolution trigger detected in input")
        return DetectionResult.not_detected()

    def detect_trigger(self, payload: Any) -> Optional[TriggerRequest]:
        """Return the detected request, or None for no trigger or failure."""
        return self.detect(payload).request

    @staticmethod
    def validate(request: Optional[TriggerRequest]) -> bool:
        """Check that a request carries everything needed to act on it.

        Does not mutate or normalize the request.
        """
        if request is None:
            return False

        if isinstance(request, BatchRequest):
            return bool(request.issue_list) and all(
                _is_complete_reference(issue) for issue in request.issue_list
            )

        if isinstance(request, RepoWideRequest):
            return bool(request.owner and request.repo)

        if isinstance(request, IssueReference):
            return _is_complete_reference(request)

        return False


def _is_complete_reference(issue: Any) -> bool:
    return bool(
        getattr(issue, "owner", None)
        and getattr(issue, "repo", None)
        and getattr(issue, "issue_number", None)
    )
