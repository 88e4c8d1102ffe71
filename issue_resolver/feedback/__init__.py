"""Issue feedback comments and result visualization."""

from issue_resolver.feedback.formatting import (
    format_feedback_comment,
    format_visualization_markdown,
)
from issue_resolver.feedback.renderer import FeedbackRenderer

__all__ = [
    "FeedbackRenderer",
    "format_feedback_comment",
    "format_visualization_markdown",
]
