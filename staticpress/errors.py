from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


class SiteError(Exception):
    """Base class for every error raised by the generator."""


class ConfigError(SiteError):
    pass


class ParseError(SiteError):
    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class RenderError(SiteError):
    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class CollisionError(SiteError):
    def __init__(self, path: str, first: str, second: str) -> None:
        super().__init__(f"{second} resolves to {path}, already claimed by {first}")
        self.path = path
        self.first = first
        self.second = second


@dataclass
class Failure:
    source: str
    error: SiteError

    def __str__(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass
class BuildReport:
    failures: list[Failure] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add_failure(self, source: str, error: SiteError) -> None:
        self.failures.append(Failure(source, error))

    def failed_sources(self) -> list[str]:
        return [failure.source for failure in self.failures]
