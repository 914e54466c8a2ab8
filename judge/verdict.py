"""
Map the outcomes of one evaluation to a single verdict.

The precedence is fixed and does not depend on where an outcome sits in the
sequence: a submission that is slow on one case and wrong on another reports
Time Limit Exceeded.
"""
from typing import Sequence

from .constant import CaseStatus, Verdict
from .meta import ExecutionConstraints, TestCaseOutcome


def _exceeds_memory(outcome: TestCaseOutcome,
                    constraints: ExecutionConstraints) -> bool:
    if outcome.status == CaseStatus.MEMORY_LIMIT_EXCEEDED:
        return True
    limit = constraints.memory_limit_bytes
    return limit is not None and outcome.memoryUsed > limit


def resolve(
    outcomes: Sequence[TestCaseOutcome],
    total_test_cases: int,
    constraints: ExecutionConstraints,
) -> Verdict:
    if not outcomes:
        return Verdict.RUNTIME_ERROR
    if any(o.status == CaseStatus.TIME_LIMIT_EXCEEDED for o in outcomes):
        return Verdict.TIME_LIMIT_EXCEEDED
    if any(_exceeds_memory(o, constraints) for o in outcomes):
        return Verdict.MEMORY_LIMIT_EXCEEDED
    if any(o.status == CaseStatus.RUNTIME_ERROR for o in outcomes):
        return Verdict.RUNTIME_ERROR
    passed = sum(1 for o in outcomes if o.passed)
    if passed == total_test_cases:
        return Verdict.ACCEPTED
    return Verdict.WRONG_ANSWER
