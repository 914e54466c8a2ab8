import atexit
import os
import logging
import queue
import secrets
import threading
from pathlib import Path
from flask import Flask, request, jsonify
from judge.exception import (
    NotSupportedError,
    ProblemNotFoundError,
    SubmissionIdNotFoundError,
)
from judge.lifecycle import JudgeLifecycle
from judge.meta import SubmissionMetadata
from judge.processor import SubmissionProcessor
from judge.config import SANDBOX_TOKEN

LOG_DIR = Path(os.getenv("JUDGE_LOG_DIR", "logs"))
LOG_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    filename=LOG_DIR / "judge.log",
    level=logging.DEBUG,
)
app = Flask(__name__)
if __name__ != "__main__":
    # let flask app use gunicorn's logger
    gunicorn_logger = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_logger.handlers
    app.logger.setLevel(gunicorn_logger.level)
    logging.getLogger().setLevel(gunicorn_logger.level)

    # Allow overriding log level via environment variable
    if os.getenv("JUDGE_DEBUG", "").lower() == "true":
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)
logger = app.logger

# setup processor
JUDGE_CONFIG = os.getenv(
    "JUDGE_CONFIG",
    ".config/judge.json",
)
PROCESSOR = SubmissionProcessor(JUDGE_CONFIG)
LIFECYCLE = JudgeLifecycle(
    registry=PROCESSOR.registry,
    sandbox=PROCESSOR.sandbox,
    evaluator=PROCESSOR.evaluator,
)
PROCESSOR.start()
atexit.register(PROCESSOR.stop)
# pull missing language images in the background
if os.getenv("JUDGE_INIT_IMAGES", "true").lower() == "true":
    threading.Thread(target=LIFECYCLE.initialize, daemon=True).start()


def _envelope(msg, data=None, status="ok"):
    return jsonify({
        "status": status,
        "msg": msg,
        "data": data,
    })


def _error(msg, status_code):
    return _envelope(msg, status="err"), status_code


def _token_valid() -> bool:
    token = request.values.get("token", "")
    body = request.get_json(silent=True)
    if not token and isinstance(body, dict):
        token = str(body.get("token", ""))
    return secrets.compare_digest(token, SANDBOX_TOKEN)


@app.post("/submissions")
def submit():
    if not _token_valid():
        logger.debug("get invalid token")
        return "invalid token", 403
    body = request.get_json(silent=True)
    fields = body if isinstance(body, dict) else request.values
    user_id = fields.get("user_id")
    problem_id = fields.get("problem_id")
    language = fields.get("language")
    code = fields.get("code")
    if not (user_id and problem_id and language and code):
        return _error("Please provide user id, problem id, language, and code",
                      400)
    metadata = SubmissionMetadata(
        ipAddress=request.remote_addr,
        userAgent=request.headers.get("User-Agent"),
    )
    try:
        submission = PROCESSOR.submit(
            user_id=str(user_id),
            problem_id=str(problem_id),
            language=language,
            code=code,
            metadata=metadata,
        )
    except NotSupportedError as e:
        return _error(str(e), 400)
    except ProblemNotFoundError as e:
        return _error(str(e), 404)
    except ValueError as e:
        return _error(str(e), 400)
    except queue.Full:
        return _error(
            "task queue is full now.\n"
            "please wait a moment and re-send the submission.",
            500,
        )
    logger.debug(f"send submission {submission.id} to processor")
    return _envelope(
        "Submission received and is being processed",
        {
            "submissionId": submission.id,
            "status": submission.status.value,
            "verdict": submission.result.verdict.value,
        },
    ), 201


@app.get("/submissions/<submission_id>")
def get_submission(submission_id: str):
    if not _token_valid():
        return "invalid token", 403
    try:
        submission = PROCESSOR.store.get_submission(submission_id)
    except SubmissionIdNotFoundError:
        return _error("Submission not found", 404)
    return _envelope("ok", submission.model_dump(mode="json"))


@app.post("/submissions/<submission_id>/rejudge")
def rejudge(submission_id: str):
    if not _token_valid():
        return "invalid token", 403
    try:
        PROCESSOR.rejudge(submission_id)
    except SubmissionIdNotFoundError:
        return _error("Submission not found", 404)
    except queue.Full:
        return _error("task queue is full now.", 500)
    return _envelope("Submission queued for rejudging", {
        "submissionId": submission_id,
        "status": "pending",
    })


@app.get("/health")
def health():
    # each check starts a container per language
    if not _token_valid():
        return "invalid token", 403
    results = LIFECYCLE.health_check()
    healthy = bool(results) and all(r["working"] for r in results.values())
    return _envelope("ok" if healthy else "unhealthy", results,
                     "ok" if healthy else "err"), 200 if healthy else 503


@app.get("/stats")
def stats():
    if not _token_valid():
        return "invalid token", 403
    return _envelope("ok", LIFECYCLE.stats())


@app.post("/cleanup")
def cleanup():
    if not _token_valid():
        return "invalid token", 403
    if not LIFECYCLE.cleanup():
        return _error("cleanup failed", 500)
    return _envelope("ok")


@app.get("/status")
def status():
    ret = {
        "load": PROCESSOR.queue.qsize() / PROCESSOR.MAX_TASK_COUNT,
    }
    # if token is provided
    if secrets.compare_digest(SANDBOX_TOKEN, request.args.get("token", "")):
        ret.update({
            "queueSize": PROCESSOR.queue.qsize(),
            "maxTaskCount": PROCESSOR.MAX_TASK_COUNT,
            "containerCount": PROCESSOR.container_count,
            "maxContainerCount": PROCESSOR.MAX_CONTAINER_SIZE,
            "submissions": [*PROCESSOR.in_flight],
            "activeSandboxes": PROCESSOR.sandbox.active_count,
            "running": PROCESSOR.do_run,
        })
    return jsonify(ret), 200
