from __future__ import annotations

from pathlib import Path

from judge import config as judge_config


class PathTranslator:
    """
    Translate paths between the judge's view and the docker host's view.
    """

    def __init__(self,
                 working_dir: str | Path | None = None,
                 host_dir: str | Path | None = None):
        self.working_dir = Path(working_dir or judge_config.SUBMISSION_DIR
                                ).expanduser().resolve()
        host_dir = host_dir or judge_config.HOST_SUBMISSION_DIR
        self.host_dir = (Path(host_dir).expanduser().resolve()
                         if host_dir else self.working_dir)

    def to_host(self, path: str | Path) -> Path:
        """
        Convert a judge-side path to the host path used in docker binds.
        """
        p = Path(path).expanduser().resolve()
        try:
            rel = p.relative_to(self.working_dir)
            return self.host_dir / rel
        except ValueError:
            return p
