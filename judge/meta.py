from datetime import datetime, timezone
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .constant import CaseStatus, SubmissionStatus, Verdict


class TestCase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    input: str = ''
    output: str = ''
    isExample: bool = False
    explanation: Optional[str] = None

    @field_validator('id', mode='before')
    def _coerce_id(cls, v):
        return str(v)


class ExecutionConstraints(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeLimit: int = Field(gt=0)  # ms
    memoryLimit: Optional[int] = Field(default=None, gt=0)  # MB

    @property
    def memory_limit_bytes(self) -> Optional[int]:
        if self.memoryLimit is None:
            return None
        return self.memoryLimit * 1024 * 1024


class TestCaseOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    testCaseId: str
    passed: bool
    actualOutput: str = ''
    expectedOutput: str = ''
    executionTime: int = 0  # ms
    memoryUsed: int = 0  # bytes
    errorMessage: Optional[str] = None
    status: CaseStatus


class JudgeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    status: SubmissionStatus
    compilationError: Optional[str] = None
    runtimeError: Optional[str] = None
    totalExecutionTime: int = 0
    maxMemoryUsed: int = 0
    passedTestCases: int = 0
    totalTestCases: int = 0
    score: int = 0
    testCaseResults: List[TestCaseOutcome] = Field(default_factory=list)

    @model_validator(mode='after')
    def _check_counts(self):
        if self.passedTestCases > self.totalTestCases:
            raise ValueError('passed test cases exceed total test cases')
        return self


class AnalysisResult(BaseModel):
    timeComplexity: Optional[str] = None
    spaceComplexity: Optional[str] = None
    codeQuality: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)


class Analysis(AnalysisResult):
    analysisCompleted: bool = False


class SubmissionMetadata(BaseModel):
    submittedAt: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc))
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    judgeProcessingTime: Optional[int] = None  # ms


class Submission(BaseModel):
    id: str
    userId: str
    problemId: str
    language: str
    code: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    result: JudgeResult = Field(default_factory=lambda: JudgeResult(
        verdict=Verdict.PENDING,
        status=SubmissionStatus.PENDING,
    ))
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    analysis: Analysis = Field(default_factory=Analysis)

    @field_validator('userId', 'problemId', mode='before')
    def _coerce_ids(cls, v):
        return str(v)

    def is_accepted(self) -> bool:
        return (self.status == SubmissionStatus.ACCEPTED
                and self.result.verdict == Verdict.ACCEPTED)

    def execution_summary(self) -> dict:
        return {
            'status': self.status.value,
            'verdict': self.result.verdict.value,
            'executionTime': self.result.totalExecutionTime,
            'memoryUsed': self.result.maxMemoryUsed,
            'score': self.result.score,
            'passedTests':
            f'{self.result.passedTestCases}/{self.result.totalTestCases}',
        }
