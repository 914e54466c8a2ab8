import collections
import queue
import threading
import time
from typing import Optional

from runner.languages import LanguageRegistry
from runner.sandbox import Sandbox

from . import analysis, config, job, pipeline
from .evaluator import Evaluator
from .exception import NotSupportedError, SubmissionIdNotFoundError
from .meta import Submission, SubmissionMetadata
from .store import SubmissionStore
from .utils import logger


class SubmissionProcessor(threading.Thread):
    """
    Move submissions through pending -> judging -> final verdict.

    The thread drains a bounded job queue and hands every job to its own
    worker thread, keeping at most MAX_CONTAINER_SIZE judging jobs in flight.
    """

    def __init__(
        self,
        config_path=None,
        registry: Optional[LanguageRegistry] = None,
        sandbox: Optional[Sandbox] = None,
        evaluator: Optional[Evaluator] = None,
        store: Optional[SubmissionStore] = None,
    ):
        super().__init__(daemon=True)
        self.testing = False
        # read config
        queue_limit, container_limit = config.get_processor_limits(
            config_path)
        self.do_run = True
        self.MAX_TASK_COUNT = queue_limit
        self.queue = queue.Queue(self.MAX_TASK_COUNT)
        # manage containers
        self.MAX_CONTAINER_SIZE = container_limit
        self.container_count_lock = threading.Lock()
        self.container_count = 0
        # dispatched judge jobs per submission id
        self.in_flight = collections.Counter()

        self.registry = registry or LanguageRegistry.from_config()
        self.sandbox = sandbox or Sandbox()
        self.evaluator = evaluator or Evaluator(self.registry, self.sandbox)
        self.store = store or SubmissionStore()

    def inc_container(self, submission_id: str):
        with self.container_count_lock:
            self.container_count += 1
            self.in_flight[submission_id] += 1

    def dec_container(self, submission_id: str):
        # only jobs dispatched by `run` hold a slot
        with self.container_count_lock:
            if self.in_flight[submission_id] <= 0:
                return
            self.container_count -= 1
            self.in_flight[submission_id] -= 1
            if not self.in_flight[submission_id]:
                del self.in_flight[submission_id]

    def submit(
        self,
        user_id: str,
        problem_id: str,
        language: str,
        code: str,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> Submission:
        if not self.registry.supports(language):
            raise NotSupportedError(f"Unsupported language: {language}")
        _, test_cases, _ = pipeline.find_problem_test_cases(problem_id)
        submission = self.store.create_submission(
            user_id=user_id,
            problem_id=problem_id,
            language=language,
            code=code.strip(),
            total_test_cases=len(test_cases),
            metadata=metadata,
        )
        logger().info(
            f"receive submission {submission.id} for problem: {problem_id}.")
        try:
            self.store.record_submission(user_id, problem_id, language)
        except Exception as exc:
            logger().error(
                f"update submission stats failed [id={submission.id}]: {exc}")
        self._enqueue(job.Judge(submission_id=submission.id))
        return submission

    def rejudge(self, submission_id: str) -> Submission:
        submission = self.store.reset_for_rejudge(submission_id)
        logger().info(f"rejudge submission [id={submission_id}]")
        self._enqueue(job.Judge(submission_id=submission_id))
        return submission

    def _enqueue(self, _job: job.Judge):
        try:
            self.queue.put_nowait(_job)
        except queue.Full:
            # the record must not stay pending forever
            logger().warning(
                f"task queue is full [id={_job.submission_id}]")
            self.store.mark_internal_error(_job.submission_id)
            raise

    def run(self):
        self.do_run = True
        logger().debug("start processor loop")
        while True:
            # end the loop
            if not self.do_run:
                logger().debug("exit processor loop")
                break
            # no job need to be run
            if self.queue.empty():
                time.sleep(1)
                continue
            # no space for new container now
            if self.container_count >= self.MAX_CONTAINER_SIZE:
                time.sleep(1)
                continue
            _job = self.queue.get()
            if isinstance(_job, job.Analyze):
                threading.Thread(
                    target=self.analyze,
                    args=(_job.submission_id, ),
                    daemon=True,
                ).start()
                continue
            self.inc_container(_job.submission_id)
            threading.Thread(
                target=self.judge,
                args=(_job.submission_id, ),
                daemon=True,
            ).start()

    def stop(self):
        self.do_run = False
        self.sandbox.kill_all()

    def judge(self, submission_id: str):
        started = time.monotonic()
        try:
            submission = self.store.mark_judging(submission_id)
            constraints, test_cases, difficulty = pipeline.find_problem_test_cases(
                submission.problemId)
            result = self.evaluator.evaluate(
                code=submission.code,
                language=submission.language,
                test_cases=test_cases,
                constraints=constraints,
            )
            processing_time = int((time.monotonic() - started) * 1000)
            submission = self.store.update_submission_result(
                submission_id,
                result,
                processing_time,
            )
        except Exception as exc:
            logger().error(f"judge submission failed [id={submission_id}]: {exc}",
                           exc_info=True)
            self._mark_internal_error(submission_id)
            return
        finally:
            self.dec_container(submission_id)
        logger().info(
            f"finish judging [id={submission_id}]: {submission.result.verdict.value}"
        )
        if submission.is_accepted():
            try:
                self.store.record_acceptance(
                    user_id=submission.userId,
                    problem_id=submission.problemId,
                    submission_id=submission_id,
                    difficulty=difficulty,
                )
            except Exception as exc:
                logger().error(
                    f"update acceptance stats failed [id={submission_id}]: {exc}"
                )
        if self.testing:
            logger().info(
                f"skip code analysis in testing [submission_id={submission_id}]"
            )
            return
        try:
            self.queue.put_nowait(job.Analyze(submission_id=submission_id))
        except queue.Full:
            logger().warning(
                f"task queue is full, skip code analysis [id={submission_id}]")
            self.store.save_analysis(submission_id, None)

    def _mark_internal_error(self, submission_id: str):
        try:
            self.store.mark_internal_error(submission_id)
        except Exception as exc:
            logger().error(
                f"mark internal error failed [id={submission_id}]: {exc}")

    def analyze(self, submission_id: str):
        try:
            submission = self.store.get_submission(submission_id)
        except SubmissionIdNotFoundError:
            logger().warning(
                f"analyze unknown submission [id={submission_id}]")
            return
        try:
            annotation = analysis.analyze(submission.code, submission.language)
        except Exception as exc:
            # advisory only, the verdict stays as judged
            logger().warning(
                f"code analysis failed [id={submission_id}]: {exc}")
            annotation = None
        self.store.save_analysis(submission_id, annotation)
