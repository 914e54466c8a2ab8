import json

import pytest
import requests

from judge import analysis, pipeline
from judge.exception import AnalysisError, ProblemNotFoundError
from tests.doubles import DummyRedis

PROBLEM_DATA = {
    "difficulty": "medium",
    "constraints": {
        "timeLimit": 1500,
        "memoryLimit": 128,
    },
    "testCases": [
        {
            "_id": "abc",
            "input": "1 2",
            "output": "3",
            "isExample": True,
        },
        {
            "id": 7,
            "input": "2 2",
            "output": "4",
        },
    ],
}


class DummyResponse:

    def __init__(self, data=None, ok=True, status_code=200, text=""):
        self._data = data
        self.ok = ok
        self.status_code = status_code
        self.text = text

    def json(self):
        return {"data": self._data}


@pytest.fixture
def dummy_redis(monkeypatch):
    client = DummyRedis()
    monkeypatch.setattr(pipeline, "get_redis_client", lambda: client)
    return client


def test_find_problem_test_cases_fetches_and_caches(monkeypatch, dummy_redis):
    calls = []

    def fake_get(url, params=None):
        calls.append(url)
        return DummyResponse(PROBLEM_DATA)

    monkeypatch.setattr(pipeline.rq, "get", fake_get)
    constraints, test_cases, difficulty = pipeline.find_problem_test_cases(
        "p1")
    assert constraints.timeLimit == 1500
    assert constraints.memoryLimit == 128
    assert [tc.id for tc in test_cases] == ["abc", "7"]
    assert test_cases[0].isExample
    assert difficulty == "medium"
    assert calls[0].endswith("/problem/p1/testcases")
    assert json.loads(dummy_redis.get("problem-p1-testcases")) == PROBLEM_DATA

    # second lookup is served from redis
    pipeline.find_problem_test_cases("p1")
    assert len(calls) == 1


def test_missing_problem(monkeypatch, dummy_redis):
    monkeypatch.setattr(
        pipeline.rq, "get", lambda *args, **kwargs: DummyResponse(
            ok=False, status_code=404))
    with pytest.raises(ProblemNotFoundError):
        pipeline.find_problem_test_cases("nope")


def test_default_constraints():
    constraints, test_cases, difficulty = pipeline.parse_problem_data({})
    assert constraints.timeLimit == 2000
    assert constraints.memoryLimit == 256
    assert test_cases == []
    assert difficulty is None


def test_analysis_unconfigured(monkeypatch):
    monkeypatch.setattr(analysis, "ANALYSIS_API", "")
    with pytest.raises(AnalysisError):
        analysis.analyze("print(1)", "python")


def test_analysis_success(monkeypatch):
    monkeypatch.setattr(analysis, "ANALYSIS_API", "http://ai:8000")
    monkeypatch.setattr(
        analysis.rq, "post", lambda *args, **kwargs: DummyResponse({
            "timeComplexity": "O(n)",
            "spaceComplexity": "O(1)",
            "codeQuality": "good",
            "suggestions": ["name variables"],
        }))
    result = analysis.analyze("print(1)", "python")
    assert result.timeComplexity == "O(n)"
    assert result.suggestions == ["name variables"]


def test_analysis_request_error(monkeypatch):
    monkeypatch.setattr(analysis, "ANALYSIS_API", "http://ai:8000")

    def fail(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(analysis.rq, "post", fail)
    with pytest.raises(AnalysisError):
        analysis.analyze("print(1)", "python")


def test_analysis_bad_status(monkeypatch):
    monkeypatch.setattr(analysis, "ANALYSIS_API", "http://ai:8000")
    monkeypatch.setattr(
        analysis.rq, "post", lambda *args, **kwargs: DummyResponse(
            ok=False, status_code=502, text="bad gateway"))
    with pytest.raises(AnalysisError):
        analysis.analyze("print(1)", "python")
