import queue
import threading

import pytest

from judge import analysis as analysis_module
from judge import pipeline
from judge import job
from judge.constant import SubmissionStatus, Verdict
from judge.evaluator import Evaluator
from judge.exception import AnalysisError, NotSupportedError, SandboxSetupError
from judge.meta import AnalysisResult, ExecutionConstraints, TestCase
from judge.processor import SubmissionProcessor
from tests.doubles import FakeSandbox, ok_outcome

TEST_CASES = [
    TestCase(id="1", input="1 2\n", output="3", isExample=True),
    TestCase(id="2", input="5 5\n", output="10"),
]
CONSTRAINTS = ExecutionConstraints(timeLimit=1000, memoryLimit=128)


def _adder(stdin, code):
    return ok_outcome(str(sum(int(x) for x in stdin.split())))


@pytest.fixture(autouse=True)
def _patch_problem_data(monkeypatch):
    monkeypatch.setattr(
        pipeline,
        "find_problem_test_cases",
        lambda problem_id: (CONSTRAINTS, TEST_CASES, "easy"),
    )


@pytest.fixture
def make_processor(registry, store, tmp_path):

    def _make(sandbox=None):
        sandbox = sandbox or FakeSandbox(_adder)
        p = SubmissionProcessor(
            config_path=tmp_path / "judge.json",
            registry=registry,
            sandbox=sandbox,
            evaluator=Evaluator(registry, sandbox, root_dir=tmp_path),
            store=store,
        )
        p.testing = True
        return p

    return _make


def _submit(processor, language="python", code="  print(1)\n"):
    return processor.submit(
        user_id="u1",
        problem_id="p1",
        language=language,
        code=code,
    )


def test_submit_persists_pending_and_enqueues(make_processor, store):
    processor = make_processor()
    submission = _submit(processor)
    loaded = store.get_submission(submission.id)
    assert loaded.status == SubmissionStatus.PENDING
    assert loaded.result.verdict == Verdict.PENDING
    assert loaded.result.totalTestCases == 2
    assert loaded.code == "print(1)"
    queued = processor.queue.get_nowait()
    assert queued == job.Judge(submission_id=submission.id)


def test_submit_rejects_unknown_language(make_processor):
    processor = make_processor()
    with pytest.raises(NotSupportedError):
        _submit(processor, language="cobol")
    assert processor.queue.empty()


def test_submit_full_queue(make_processor, store):
    processor = make_processor()
    processor.queue = queue.Queue(1)
    _submit(processor)
    with pytest.raises(queue.Full):
        _submit(processor)


def test_submit_counts_submission_once(make_processor, store, dummy_redis):
    processor = make_processor()
    submission = _submit(processor)
    processor.queue.get_nowait()
    processor.rejudge(submission.id)
    assert dummy_redis.hashes[store.user_stats_key("u1")] == {
        "totalSubmissions": 1
    }
    assert dummy_redis.hashes[store.problem_stats_key("p1")] == {
        "totalSubmissions": 1,
        "submissionsByLanguage.python": 1,
    }


def _dispatch(processor, submission_id):
    # what the run loop does for a judge job
    processor.inc_container(submission_id)
    worker = threading.Thread(target=processor.judge, args=(submission_id, ))
    worker.start()
    return worker


def test_rejudge_while_judging_releases_every_slot(make_processor):
    entered = threading.Event()
    gate = threading.Event()

    def blocking(stdin, code):
        entered.set()
        assert gate.wait(5)
        return _adder(stdin, code)

    processor = make_processor(FakeSandbox(blocking))
    submission = _submit(processor)
    processor.queue.get_nowait()
    first = _dispatch(processor, submission.id)
    assert entered.wait(5)

    processor.rejudge(submission.id)
    processor.queue.get_nowait()
    second = _dispatch(processor, submission.id)
    assert processor.container_count == 2

    gate.set()
    first.join(5)
    second.join(5)
    assert processor.container_count == 0
    assert not processor.in_flight


def test_direct_judge_holds_no_slot(make_processor):
    processor = make_processor()
    submission = _submit(processor)
    processor.judge(submission.id)
    assert processor.container_count == 0
    assert not processor.in_flight


def test_judge_accepted_records_stats(make_processor, store, dummy_redis):
    processor = make_processor()
    submission = _submit(processor)
    processor.judge(submission.id)
    loaded = store.get_submission(submission.id)
    assert loaded.status == SubmissionStatus.ACCEPTED
    assert loaded.result.verdict == Verdict.ACCEPTED
    assert loaded.result.passedTestCases == 2
    assert loaded.metadata.judgeProcessingTime is not None
    stats = dummy_redis.hashes[store.user_stats_key("u1")]
    assert stats["problemsSolved"] == 1
    assert stats["easyProblems"] == 1


def test_rejudge_does_not_double_count(make_processor, store, dummy_redis):
    processor = make_processor()
    submission = _submit(processor)
    processor.judge(submission.id)
    processor.queue.get_nowait()

    reset = processor.rejudge(submission.id)
    assert reset.status == SubmissionStatus.PENDING
    assert processor.queue.get_nowait() == job.Judge(
        submission_id=submission.id)
    processor.judge(submission.id)

    assert store.get_submission(submission.id).is_accepted()
    stats = dummy_redis.hashes[store.user_stats_key("u1")]
    assert stats == {
        "totalSubmissions": 1,
        "acceptedSubmissions": 1,
        "problemsSolved": 1,
        "easyProblems": 1,
    }


def test_wrong_answer_skips_stats(make_processor, store, dummy_redis):
    processor = make_processor(FakeSandbox(lambda stdin, code: ok_outcome("0")))
    submission = _submit(processor)
    processor.judge(submission.id)
    loaded = store.get_submission(submission.id)
    assert loaded.status == SubmissionStatus.WRONG_ANSWER
    assert loaded.result.verdict == Verdict.WRONG_ANSWER
    assert dummy_redis.hashes[store.user_stats_key("u1")] == {
        "totalSubmissions": 1
    }
    assert "acceptedSubmissions" not in dummy_redis.hashes[
        store.problem_stats_key("p1")]


def test_infrastructure_failure_is_internal_error(make_processor, store):

    def explode(stdin, code):
        raise SandboxSetupError("daemon unavailable")

    processor = make_processor(FakeSandbox(explode))
    submission = _submit(processor)
    processor.judge(submission.id)
    loaded = store.get_submission(submission.id)
    assert loaded.status == SubmissionStatus.RUNTIME_ERROR
    assert loaded.result.verdict == Verdict.RUNTIME_ERROR
    assert loaded.result.runtimeError == "Internal server error during execution"
    assert processor.container_count == 0


def test_problem_lookup_failure_is_internal_error(make_processor, store,
                                                  monkeypatch):
    processor = make_processor()
    submission = _submit(processor)

    def fail(problem_id):
        raise RuntimeError("backend down")

    monkeypatch.setattr(pipeline, "find_problem_test_cases", fail)
    processor.judge(submission.id)
    assert store.get_submission(
        submission.id).status == SubmissionStatus.RUNTIME_ERROR


def test_judge_enqueues_analysis_outside_testing(make_processor):
    processor = make_processor()
    processor.testing = False
    submission = _submit(processor)
    processor.queue.get_nowait()
    processor.judge(submission.id)
    assert processor.queue.get_nowait() == job.Analyze(
        submission_id=submission.id)


def test_analysis_success(make_processor, store, monkeypatch):
    monkeypatch.setattr(
        analysis_module, "analyze", lambda code, language: AnalysisResult(
            timeComplexity="O(1)", spaceComplexity="O(1)"))
    processor = make_processor()
    submission = _submit(processor)
    processor.judge(submission.id)
    processor.analyze(submission.id)
    loaded = store.get_submission(submission.id)
    assert loaded.analysis.analysisCompleted
    assert loaded.analysis.timeComplexity == "O(1)"
    assert loaded.status == SubmissionStatus.ACCEPTED


def test_analysis_failure_is_isolated(make_processor, store, monkeypatch):

    def fail(code, language):
        raise AnalysisError("service down")

    monkeypatch.setattr(analysis_module, "analyze", fail)
    processor = make_processor()
    submission = _submit(processor)
    processor.judge(submission.id)
    processor.analyze(submission.id)
    loaded = store.get_submission(submission.id)
    assert not loaded.analysis.analysisCompleted
    assert loaded.status == SubmissionStatus.ACCEPTED
    assert loaded.result.verdict == Verdict.ACCEPTED


def test_stop_kills_sandboxes(make_processor):
    sandbox = FakeSandbox()
    processor = make_processor(sandbox)
    processor.stop()
    assert not processor.do_run
    assert sandbox.killed


def test_run_loop_dispatches_jobs(make_processor, store):
    processor = make_processor()
    submission = _submit(processor)
    processor.start()
    try:
        for _ in range(100):
            if store.get_submission(submission.id).status.is_terminal:
                break
            processor.join(0.05)
    finally:
        processor.stop()
        processor.join(5)
    assert store.get_submission(submission.id).is_accepted()
