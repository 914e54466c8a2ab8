import pytest

from judge.store import SubmissionStore
from runner.languages import LanguageRegistry
from tests.doubles import DummyRedis


@pytest.fixture
def dummy_redis():
    return DummyRedis()


@pytest.fixture
def store(dummy_redis):
    return SubmissionStore(client=dummy_redis)


@pytest.fixture
def registry(tmp_path):
    # a missing config file leaves the built-in profiles
    return LanguageRegistry.from_config(tmp_path / "languages.json")
