from dataclasses import dataclass


@dataclass
class Judge:
    submission_id: str


@dataclass
class Analyze:
    submission_id: str
