from pathlib import Path
from typing import Optional, Sequence

from runner.languages import LanguageProfile, LanguageRegistry
from runner.sandbox import Sandbox

from . import file_manager
from .constant import CaseStatus
from .exception import NotSupportedError
from .meta import ExecutionConstraints, JudgeResult, TestCase, TestCaseOutcome
from .result_factory import (
    make_case_outcome,
    make_compilation_error_result,
    make_judge_result,
)
from .utils import logger
from .verdict import resolve


class Evaluator:
    """
    Drive the sandbox across the test cases of one problem and fold the
    outcomes into a JudgeResult.
    """

    def __init__(
        self,
        registry: LanguageRegistry,
        sandbox: Sandbox,
        root_dir: Optional[Path] = None,
    ):
        self.registry = registry
        self.sandbox = sandbox
        self.root_dir = root_dir

    def evaluate(
        self,
        code: str,
        language: str,
        test_cases: Sequence[TestCase],
        constraints: ExecutionConstraints,
    ) -> JudgeResult:
        total = len(test_cases)
        try:
            profile = self.registry.profile_for(language)
        except NotSupportedError as exc:
            logger().warning(f"reject evaluation: {exc}")
            return make_compilation_error_result(str(exc), total)

        workdir = file_manager.create_workdir(self.root_dir)
        try:
            file_manager.write_source(workdir, profile.file_name, code)
            if profile.compile_need:
                logger().debug(f"start compiling [workdir={workdir.name}]")
                compiled = self.sandbox.compile(profile, workdir)
                if not compiled.ok:
                    logger().debug(
                        f"compilation failed [workdir={workdir.name}]")
                    return make_compilation_error_result(
                        compiled.error_text, total)

            outcomes: list[TestCaseOutcome] = []
            total_time = 0
            max_memory = 0
            for index, test_case in enumerate(test_cases):
                outcome = self._run_case(
                    profile=profile,
                    workdir=workdir,
                    index=index,
                    test_case=test_case,
                    constraints=constraints,
                )
                outcomes.append(outcome)
                total_time += outcome.executionTime
                max_memory = max(max_memory, outcome.memoryUsed)
                logger().debug(
                    f"finish case {index} [workdir={workdir.name}]: {outcome.status.value}"
                )
                # a runtime error keeps the loop going, any other failure stops it
                if (not outcome.passed
                        and outcome.status != CaseStatus.RUNTIME_ERROR):
                    break

            verdict = resolve(outcomes, total, constraints)
            runtime_error = next(
                (o.errorMessage
                 for o in outcomes if o.status == CaseStatus.RUNTIME_ERROR),
                None,
            )
            return make_judge_result(
                verdict=verdict,
                outcomes=outcomes,
                total_test_cases=total,
                total_execution_time=total_time,
                max_memory_used=max_memory,
                runtime_error=runtime_error,
            )
        finally:
            file_manager.clean_data(workdir)

    def _run_case(
        self,
        profile: LanguageProfile,
        workdir: Path,
        index: int,
        test_case: TestCase,
        constraints: ExecutionConstraints,
    ) -> TestCaseOutcome:
        stdin_name = file_manager.write_case_input(workdir, index,
                                                   test_case.input)
        try:
            res = self.sandbox.run(profile, workdir, stdin_name, constraints)
        finally:
            file_manager.remove_case_input(workdir, index)

        if res.timed_out:
            return make_case_outcome(
                test_case,
                CaseStatus.TIME_LIMIT_EXCEEDED,
                execution_time=res.elapsed_ms,
                memory_used=res.memory_bytes,
            )
        if res.oom_killed:
            return make_case_outcome(
                test_case,
                CaseStatus.MEMORY_LIMIT_EXCEEDED,
                execution_time=res.elapsed_ms,
                memory_used=res.memory_bytes,
            )
        if not res.exit_ok:
            return make_case_outcome(
                test_case,
                CaseStatus.RUNTIME_ERROR,
                execution_time=res.elapsed_ms,
                memory_used=res.memory_bytes,
                error_message=res.stderr
                or f"Process exited with code {res.exit_code}",
            )
        actual = res.stdout.strip()
        status = (CaseStatus.ACCEPTED if actual == test_case.output.strip()
                  else CaseStatus.WRONG_ANSWER)
        return make_case_outcome(
            test_case,
            status,
            actual_output=actual,
            execution_time=res.elapsed_ms,
            memory_used=res.memory_bytes,
        )
