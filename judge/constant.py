from enum import Enum


class Verdict(str, Enum):
    ACCEPTED = 'Accepted'
    WRONG_ANSWER = 'Wrong Answer'
    TIME_LIMIT_EXCEEDED = 'Time Limit Exceeded'
    MEMORY_LIMIT_EXCEEDED = 'Memory Limit Exceeded'
    RUNTIME_ERROR = 'Runtime Error'
    COMPILATION_ERROR = 'Compilation Error'
    JUDGING = 'Judging'
    PENDING = 'Pending'


class CaseStatus(str, Enum):
    ACCEPTED = 'accepted'
    WRONG_ANSWER = 'wrong_answer'
    TIME_LIMIT_EXCEEDED = 'time_limit_exceeded'
    MEMORY_LIMIT_EXCEEDED = 'memory_limit_exceeded'
    RUNTIME_ERROR = 'runtime_error'


class SubmissionStatus(str, Enum):
    PENDING = 'pending'
    JUDGING = 'judging'
    ACCEPTED = 'accepted'
    WRONG_ANSWER = 'wrong_answer'
    TIME_LIMIT_EXCEEDED = 'time_limit_exceeded'
    MEMORY_LIMIT_EXCEEDED = 'memory_limit_exceeded'
    RUNTIME_ERROR = 'runtime_error'
    COMPILATION_ERROR = 'compilation_error'

    @property
    def is_terminal(self) -> bool:
        return self not in {SubmissionStatus.PENDING, SubmissionStatus.JUDGING}


VERDICT_STATUS = {
    Verdict.ACCEPTED: SubmissionStatus.ACCEPTED,
    Verdict.WRONG_ANSWER: SubmissionStatus.WRONG_ANSWER,
    Verdict.TIME_LIMIT_EXCEEDED: SubmissionStatus.TIME_LIMIT_EXCEEDED,
    Verdict.MEMORY_LIMIT_EXCEEDED: SubmissionStatus.MEMORY_LIMIT_EXCEEDED,
    Verdict.RUNTIME_ERROR: SubmissionStatus.RUNTIME_ERROR,
    Verdict.COMPILATION_ERROR: SubmissionStatus.COMPILATION_ERROR,
    Verdict.JUDGING: SubmissionStatus.JUDGING,
    Verdict.PENDING: SubmissionStatus.PENDING,
}

INTERNAL_ERROR_MESSAGE = 'Internal server error during execution'
WRONG_ANSWER_MESSAGE = 'Output does not match expected result'
TIME_LIMIT_MESSAGE = 'Time limit exceeded'
MEMORY_LIMIT_MESSAGE = 'Memory limit exceeded'
