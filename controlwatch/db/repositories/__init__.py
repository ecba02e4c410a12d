"""Domain-specific repositories for database operations.

- EvaluationResultRepository: evaluation results (append-only)
"""

from .evaluation import EvaluationResultRepository

__all__ = ["EvaluationResultRepository"]
