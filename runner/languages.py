from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from judge import config as judge_config
from judge.exception import NotSupportedError


@dataclass(frozen=True)
class LanguageProfile:
    language: str
    image: str
    file_name: str
    run_command: str
    compile_command: Optional[str] = None
    timeout_ms: int = 10000
    memory_limit_mb: int = 256

    @property
    def compile_need(self) -> bool:
        return bool(self.compile_command)


DEFAULT_PROFILES = {
    "cpp": {
        "image": "gcc:latest",
        "file_name": "solution.cpp",
        "compile_command": "g++ -o solution solution.cpp -std=c++17 -O2",
        "run_command": "./solution",
        "timeout_ms": 10000,
    },
    "java": {
        "image": "openjdk:11",
        "file_name": "Solution.java",
        "compile_command": "javac Solution.java",
        "run_command": "java Solution",
        # JVM startup needs more headroom
        "timeout_ms": 15000,
    },
    "python": {
        "image": "python:3.9-slim",
        "file_name": "solution.py",
        "run_command": "python3 solution.py",
        "timeout_ms": 10000,
    },
    "javascript": {
        "image": "node:16-slim",
        "file_name": "solution.js",
        "run_command": "node solution.js",
        "timeout_ms": 10000,
    },
}


class LanguageRegistry:
    """
    Read-only mapping from a language identifier to its sandbox profile.
    """

    def __init__(self, profiles: Mapping[str, LanguageProfile]):
        self._profiles = MappingProxyType(dict(profiles))

    @classmethod
    def from_config(cls,
                    config_path: str | Path | None = None) -> "LanguageRegistry":
        """
        Build the registry from the built-in profiles, overridden per key
        by the languages config file.
        """
        raw = {k: dict(v) for k, v in DEFAULT_PROFILES.items()}
        for lang, override in judge_config.get_language_config(
                config_path).items():
            if override is None:
                # explicit null disables a built-in language
                raw.pop(lang, None)
                continue
            raw.setdefault(lang, {}).update(override)
        known = {f.name for f in fields(LanguageProfile)}
        profiles: Dict[str, LanguageProfile] = {}
        for lang, values in raw.items():
            values = {k: v for k, v in values.items() if k in known}
            values["language"] = lang
            profiles[lang] = LanguageProfile(**values)
        return cls(profiles)

    def profile_for(self, language: str) -> LanguageProfile:
        try:
            return self._profiles[language]
        except KeyError:
            raise NotSupportedError(
                f"Unsupported language: {language}") from None

    def supports(self, language: str) -> bool:
        return language in self._profiles

    def languages(self) -> list[str]:
        return [*self._profiles.keys()]

    def images(self) -> list[str]:
        # keep order, drop duplicates
        return [*dict.fromkeys(p.image for p in self._profiles.values())]
