"""
Factory functions for creating standardized judge results.

This module provides consistent result structures for:
- Test case outcomes (one per executed case)
- Final judge results (one per evaluation)
- Placeholder results stored while a submission waits or is judged
"""

from typing import Optional, Sequence

from . import config
from .constant import (
    INTERNAL_ERROR_MESSAGE,
    MEMORY_LIMIT_MESSAGE,
    TIME_LIMIT_MESSAGE,
    VERDICT_STATUS,
    WRONG_ANSWER_MESSAGE,
    CaseStatus,
    Verdict,
)
from .meta import JudgeResult, TestCase, TestCaseOutcome


def make_case_outcome(
    test_case: TestCase,
    status: CaseStatus,
    actual_output: str = "",
    execution_time: int = 0,
    memory_used: int = 0,
    error_message: Optional[str] = None,
) -> TestCaseOutcome:
    """
    Build a single test case outcome.

    Args:
        test_case: The case that was executed
        status: Outcome class of the case
        actual_output: Trimmed stdout of the program
        execution_time: Wall-clock time in ms
        memory_used: Peak memory in bytes
        error_message: Error text; a default is filled in for failures

    Returns:
        Frozen TestCaseOutcome
    """
    if error_message is None:
        error_message = {
            CaseStatus.WRONG_ANSWER: WRONG_ANSWER_MESSAGE,
            CaseStatus.TIME_LIMIT_EXCEEDED: TIME_LIMIT_MESSAGE,
            CaseStatus.MEMORY_LIMIT_EXCEEDED: MEMORY_LIMIT_MESSAGE,
        }.get(status)
    return TestCaseOutcome(
        testCaseId=test_case.id,
        passed=status == CaseStatus.ACCEPTED,
        actualOutput=actual_output,
        expectedOutput=test_case.output,
        executionTime=execution_time,
        memoryUsed=memory_used,
        errorMessage=error_message,
        status=status,
    )


def make_judge_result(
    verdict: Verdict,
    outcomes: Sequence[TestCaseOutcome],
    total_test_cases: int,
    total_execution_time: int = 0,
    max_memory_used: int = 0,
    runtime_error: Optional[str] = None,
) -> JudgeResult:
    """
    Build the final result of an evaluation. Only the first
    STORED_CASE_LIMIT outcomes are kept on the result.
    """
    passed = sum(1 for o in outcomes if o.passed)
    score = round(passed * 100 / total_test_cases) if total_test_cases else 0
    return JudgeResult(
        verdict=verdict,
        status=VERDICT_STATUS[verdict],
        runtimeError=runtime_error,
        totalExecutionTime=total_execution_time,
        maxMemoryUsed=max_memory_used,
        passedTestCases=passed,
        totalTestCases=total_test_cases,
        score=score,
        testCaseResults=list(outcomes[:config.STORED_CASE_LIMIT]),
    )


def make_compilation_error_result(message: str,
                                  total_test_cases: int = 0) -> JudgeResult:
    return JudgeResult(
        verdict=Verdict.COMPILATION_ERROR,
        status=VERDICT_STATUS[Verdict.COMPILATION_ERROR],
        compilationError=message,
        totalTestCases=total_test_cases,
    )


def make_internal_error_result(total_test_cases: int = 0) -> JudgeResult:
    return JudgeResult(
        verdict=Verdict.RUNTIME_ERROR,
        status=VERDICT_STATUS[Verdict.RUNTIME_ERROR],
        runtimeError=INTERNAL_ERROR_MESSAGE,
        totalTestCases=total_test_cases,
    )


def make_placeholder_result(verdict: Verdict,
                            total_test_cases: int = 0) -> JudgeResult:
    """Result stored while a submission is pending or being judged."""
    return JudgeResult(
        verdict=verdict,
        status=VERDICT_STATUS[verdict],
        totalTestCases=total_test_cases,
    )
