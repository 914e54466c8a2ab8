import json
from typing import List, Optional, Tuple

import requests as rq

from .config import BACKEND_API, PROBLEM_CACHE_TTL, SANDBOX_TOKEN
from .exception import ProblemNotFoundError
from .meta import ExecutionConstraints, TestCase
from .utils import get_redis_client, logger


def handle_problem_response(resp: rq.Response):
    if resp.status_code == 404:
        raise ProblemNotFoundError("Problem not found")
    if resp.status_code == 401:
        raise PermissionError()
    if not resp.ok:
        logger().error(f"Error during get problem data [resp: {resp.text}]")
        raise RuntimeError()


def fetch_problem_data(problem_id: str) -> dict:
    """
    Fetch constraints, difficulty and test cases of a problem from backend
    """
    logger().debug(f"fetch problem test cases [problem_id: {problem_id}]")
    resp = rq.get(
        f"{BACKEND_API}/problem/{problem_id}/testcases",
        params={
            "token": SANDBOX_TOKEN,
        },
    )
    handle_problem_response(resp)
    return resp.json()["data"]


def parse_problem_data(
    data: dict
) -> Tuple[ExecutionConstraints, List[TestCase], Optional[str]]:
    constraints = data.get("constraints") or {}
    test_cases = []
    for raw in data.get("testCases") or []:
        raw = dict(raw)
        # documents from the backend carry their id as `_id`
        if "id" not in raw and "_id" in raw:
            raw["id"] = raw.pop("_id")
        test_cases.append(TestCase(**raw))
    return (
        ExecutionConstraints(
            timeLimit=constraints.get("timeLimit", 2000),
            memoryLimit=constraints.get("memoryLimit", 256),
        ),
        test_cases,
        data.get("difficulty"),
    )


def find_problem_test_cases(
    problem_id: str
) -> Tuple[ExecutionConstraints, List[TestCase], Optional[str]]:
    client = get_redis_client()
    key = f"problem-{problem_id}-testcases"
    cached = client.get(key)
    if cached is not None:
        logger().debug(f"problem data cache hit [problem_id: {problem_id}]")
        return parse_problem_data(json.loads(cached))
    with client.lock(f"{key}-lock", timeout=60):
        # another worker may have filled the cache while we waited
        cached = client.get(key)
        if cached is not None:
            return parse_problem_data(json.loads(cached))
        data = fetch_problem_data(problem_id)
        result = parse_problem_data(data)
        client.setex(key, PROBLEM_CACHE_TTL, json.dumps(data))
    return result

