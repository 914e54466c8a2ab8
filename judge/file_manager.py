import shutil
import uuid
from pathlib import Path

from . import config
from .utils import logger


def create_workdir(root_dir: Path | None = None) -> Path:
    root_dir = root_dir or config.SUBMISSION_DIR
    workdir = root_dir / f'judge_{uuid.uuid4().hex}'
    workdir.mkdir(parents=True)
    # sandbox processes run as an unprivileged user
    workdir.chmod(0o777)
    return workdir


def write_source(workdir: Path, file_name: str, code: str) -> Path:
    if not file_name or Path(file_name).name != file_name:
        raise ValueError(f'invalid source file name: {file_name!r}')
    source_path = workdir / file_name
    source_path.write_text(code)
    logger().debug(f'write source [path={source_path}]')
    return source_path


def case_input_name(case_index: int) -> str:
    return f'input_{case_index}.txt'


def write_case_input(workdir: Path, case_index: int, data: str) -> str:
    name = case_input_name(case_index)
    (workdir / name).write_text(data)
    return name


def remove_case_input(workdir: Path, case_index: int):
    (workdir / case_input_name(case_index)).unlink(missing_ok=True)


def clean_data(workdir: Path):
    try:
        shutil.rmtree(workdir)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger().error(f'cleanup workdir failed [path={workdir}]: {exc}')

