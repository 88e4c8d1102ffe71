"""Automated GitHub issue resolution.

This package recognizes resolution requests in free-form text and drives
each requested issue through a multi-stage pipeline:
- Trigger detection (single issue, batch, repository-wide)
- Layered configuration (defaults, JSON/YAML file, environment)
- Issue fetch, task preparation and LLM code generation
- Branch, commit and pull request creation
- Feedback comment and result visualization
- Concurrency-bounded batch processing
"""

__version__ = "0.1.0"
