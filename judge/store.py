import uuid
from typing import Callable, Optional

from . import result_factory
from .constant import SubmissionStatus, Verdict
from .exception import SubmissionIdNotFoundError
from .meta import Analysis, AnalysisResult, JudgeResult, Submission, SubmissionMetadata
from .utils import get_redis_client, logger


class SubmissionStore:
    """
    Submission records kept in redis as JSON documents.

    Every state change rewrites the whole record with a single `set`, so a
    reader never observes a status that disagrees with the stored verdict.
    Writers read and rewrite a record under its own redis lock.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    @staticmethod
    def submission_key(submission_id: str) -> str:
        return f'submission-{submission_id}'

    @staticmethod
    def user_stats_key(user_id: str) -> str:
        return f'user-{user_id}-stats'

    @staticmethod
    def problem_stats_key(problem_id: str) -> str:
        return f'problem-{problem_id}-stats'

    def _save(self, submission: Submission) -> Submission:
        self.client.set(
            self.submission_key(submission.id),
            submission.model_dump_json(),
        )
        return submission

    def create_submission(
        self,
        user_id: str,
        problem_id: str,
        language: str,
        code: str,
        total_test_cases: int = 0,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> Submission:
        submission = Submission(
            id=uuid.uuid4().hex,
            userId=user_id,
            problemId=problem_id,
            language=language,
            code=code,
            status=SubmissionStatus.PENDING,
            result=result_factory.make_placeholder_result(
                Verdict.PENDING, total_test_cases),
            metadata=metadata or SubmissionMetadata(),
        )
        logger().debug(f'create submission [id={submission.id}]')
        return self._save(submission)

    def get_submission(self, submission_id: str) -> Submission:
        raw = self.client.get(self.submission_key(submission_id))
        if raw is None:
            raise SubmissionIdNotFoundError(
                f'submission {submission_id} not found')
        return Submission.model_validate_json(raw)

    def _update(self, submission_id: str,
                change: Callable[[Submission], Submission]) -> Submission:
        # writers hold the record lock from read to write
        key = self.submission_key(submission_id)
        with self.client.lock(f'{key}-lock', timeout=60):
            return self._save(change(self.get_submission(submission_id)))

    def _transition(
        self,
        submission_id: str,
        status: SubmissionStatus,
        make_result: Callable[[Submission], JudgeResult],
        make_updates: Optional[Callable[[Submission], dict]] = None,
    ) -> Submission:

        def change(submission: Submission) -> Submission:
            return submission.model_copy(update={
                'status': status,
                'result': make_result(submission),
                **(make_updates(submission) if make_updates else {}),
            })

        return self._update(submission_id, change)

    def mark_judging(self, submission_id: str) -> Submission:
        return self._transition(
            submission_id,
            SubmissionStatus.JUDGING,
            lambda s: result_factory.make_placeholder_result(
                Verdict.JUDGING, s.result.totalTestCases),
        )

    def update_submission_result(
        self,
        submission_id: str,
        result: JudgeResult,
        processing_time: Optional[int] = None,
    ) -> Submission:
        return self._transition(
            submission_id,
            result.status,
            lambda s: result,
            lambda s: {
                'metadata':
                s.metadata.model_copy(
                    update={'judgeProcessingTime': processing_time}),
            },
        )

    def mark_internal_error(self, submission_id: str) -> Submission:
        return self._transition(
            submission_id,
            SubmissionStatus.RUNTIME_ERROR,
            lambda s: result_factory.make_internal_error_result(
                s.result.totalTestCases),
        )

    def reset_for_rejudge(self, submission_id: str) -> Submission:
        return self._transition(
            submission_id,
            SubmissionStatus.PENDING,
            lambda s: result_factory.make_placeholder_result(
                Verdict.PENDING, s.result.totalTestCases),
        )

    def save_analysis(
        self,
        submission_id: str,
        analysis: Optional[AnalysisResult],
    ) -> Submission:
        """
        Attach the advisory annotation. `None` records a failed analysis.
        Status and verdict are left untouched.
        """

        def change(submission: Submission) -> Submission:
            if analysis is None:
                annotation = submission.analysis.model_copy(
                    update={'analysisCompleted': False})
            else:
                annotation = Analysis(**{
                    **analysis.model_dump(),
                    'analysisCompleted': True,
                })
            return submission.model_copy(update={'analysis': annotation})

        return self._update(submission_id, change)

    def record_submission(self, user_id: str, problem_id: str,
                          language: str):
        """
        Count a new submission for the user and the problem. Rejudges are
        not new submissions and are not counted.
        """
        self.client.hincrby(self.user_stats_key(user_id), 'totalSubmissions',
                            1)
        problem_key = self.problem_stats_key(problem_id)
        self.client.hincrby(problem_key, 'totalSubmissions', 1)
        self.client.hincrby(problem_key, f'submissionsByLanguage.{language}',
                            1)

    def record_acceptance(
        self,
        user_id: str,
        problem_id: str,
        submission_id: str,
        difficulty: Optional[str] = None,
    ) -> bool:
        """
        Update user and problem statistics for an accepted submission.

        A submission is counted at most once, however many times it is
        rejudged, and only the first accepted submission of a user on a
        problem increases the solved counters.

        Returns:
            True if this is the user's first acceptance on the problem
        """
        user_key = self.user_stats_key(user_id)
        with self.client.lock(f'{user_key}-lock', timeout=60):
            if not self.client.sadd('accepted-submissions', submission_id):
                logger().debug(
                    f'acceptance already counted [id={submission_id}]')
                return False
            self.client.hincrby(user_key, 'acceptedSubmissions', 1)
            first = bool(
                self.client.sadd(f'user-{user_id}-solved', problem_id))
            if first:
                self.client.hincrby(user_key, 'problemsSolved', 1)
                if difficulty:
                    self.client.hincrby(user_key, f'{difficulty}Problems', 1)
                self.client.hincrby(
                    self.problem_stats_key(problem_id),
                    'acceptedSubmissions',
                    1,
                )
        logger().info(f'record acceptance [id={submission_id}, first={first}]')
        return first
