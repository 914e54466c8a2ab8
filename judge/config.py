import json
import os
from pathlib import Path

# backend config
BACKEND_API = os.getenv(
    'BACKEND_API',
    'http://web:8080',
)
# judge token, shared with the backend
SANDBOX_TOKEN = os.getenv(
    'SANDBOX_TOKEN',
    'KoNoSandboxDa',
)
REDIS_URL = os.getenv(
    'REDIS_URL',
    'redis://redis:6379/0',
)
DOCKER_URL = os.getenv(
    'DOCKER_URL',
    'unix://var/run/docker.sock',
)
# advisory code analysis service, disabled when empty
ANALYSIS_API = os.getenv('ANALYSIS_API', '')
ANALYSIS_TIMEOUT = float(os.getenv('ANALYSIS_TIMEOUT', '60'))

SUBMISSION_DIR = Path(os.getenv(
    'SUBMISSION_DIR',
    'submissions',
))
# the same directory as seen by the docker daemon, used for bind mounts
HOST_SUBMISSION_DIR = os.getenv('HOST_SUBMISSION_DIR')
# create directory
SUBMISSION_DIR.mkdir(exist_ok=True)

# ============================================================
# Sandbox Resource Limits Configuration
# ============================================================
SANDBOX_CPU_PERIOD = int(os.getenv('SANDBOX_CPU_PERIOD', '100000'))
SANDBOX_CPU_QUOTA = int(os.getenv('SANDBOX_CPU_QUOTA', '50000'))
SANDBOX_PIDS_LIMIT = int(os.getenv('SANDBOX_PIDS_LIMIT', '64'))
# stderr kept for a runtime error message
ERROR_MESSAGE_LIMIT = int(os.getenv('ERROR_MESSAGE_LIMIT', '1000'))
# outcomes persisted per submission
STORED_CASE_LIMIT = int(os.getenv('STORED_CASE_LIMIT', '10'))
# problem data cache ttl in redis
PROBLEM_CACHE_TTL = int(os.getenv('PROBLEM_CACHE_TTL', '600'))

_DEFAULT_JUDGE_CONFIG_PATH = Path(
    os.getenv('JUDGE_CONFIG', '.config/judge.json'))


def _load_json_config(path: Path) -> dict:
    try:
        with path.open() as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError:
        return {}


def get_processor_limits(
        config_path: str | Path | None = None) -> tuple[int, int]:
    path = Path(config_path) if config_path else _DEFAULT_JUDGE_CONFIG_PATH
    cfg = _load_json_config(path) if path else {}
    queue_default = cfg.get('QUEUE_SIZE', 16)
    container_default = cfg.get('MAX_CONTAINER_NUMBER', 8)
    queue_size = int(os.getenv('QUEUE_SIZE', queue_default))
    container_limit = int(os.getenv('MAX_CONTAINER_NUMBER', container_default))
    return queue_size, container_limit


_LANGUAGE_CONFIG_PATH = Path(
    os.getenv('LANGUAGE_CONFIG', '.config/languages.json'))


def get_language_config(config_path: str | Path | None = None) -> dict:
    path = Path(config_path) if config_path else _LANGUAGE_CONFIG_PATH
    cfg = _load_json_config(path) if path else {}
    return cfg.get('languages', cfg)
