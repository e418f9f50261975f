from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .permalink import POST_TOKENS, expand_style, validate_pattern

DEFAULT_INCLUDE = (".htaccess",)
DEFAULT_EXCLUDE = (
    "Gemfile",
    "Gemfile.lock",
    "node_modules",
    "vendor/bundle/",
    "vendor/cache/",
    "vendor/gems/",
    "vendor/ruby/",
)
DEFAULT_MARKDOWN_EXT = ("markdown", "mkdown", "mkdn", "mkd", "md")

RECOGNIZED_KEYS = {
    "title",
    "description",
    "url",
    "baseurl",
    "permalink",
    "paginate",
    "paginate_path",
    "include",
    "exclude",
    "destination",
    "plugins",
    "defaults",
    "category_archive",
    "tag_archive",
    "words_per_minute",
    "markdown_ext",
    "build_workers",
}


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


@dataclass(frozen=True)
class FrontMatterDefault:
    path: str
    type: Optional[str]
    values: dict

    def matches(self, relative_path: str, kind: str) -> bool:
        if self.type and self.type != kind:
            return False
        scope = self.path.strip("/")
        if not scope:
            return True
        return relative_path == scope or relative_path.startswith(scope + "/")


@dataclass(frozen=True)
class SiteConfig:
    title: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    permalink: str = expand_style("date")
    paginate: Optional[int] = None
    paginate_path: str = "/page:num/"
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    destination: str = "_site"
    plugins: tuple[str, ...] = ()
    defaults: tuple[FrontMatterDefault, ...] = ()
    category_archive_path: str = "/categories/"
    tag_archive_path: str = "/tags/"
    words_per_minute: int = 200
    markdown_ext: tuple[str, ...] = DEFAULT_MARKDOWN_EXT
    build_workers: int = 0
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict) -> "SiteConfig":
        permalink = _string(data, "permalink", "date")
        pattern = expand_style(permalink)
        try:
            validate_pattern(pattern, POST_TOKENS)
        except ValueError as exc:
            raise ConfigError(f"Invalid permalink {permalink!r}: {exc}") from exc

        paginate = data.get("paginate")
        if paginate is not None:
            if isinstance(paginate, bool) or not isinstance(paginate, int) or paginate <= 0:
                raise ConfigError(f"paginate must be a positive integer, got {paginate!r}")

        paginate_path = _string(data, "paginate_path", "/page:num/")
        if ":num" not in paginate_path:
            raise ConfigError(f"paginate_path must contain ':num', got {paginate_path!r}")

        words_per_minute = data.get("words_per_minute", 200)
        if isinstance(words_per_minute, bool) or not isinstance(words_per_minute, int) or words_per_minute <= 0:
            raise ConfigError(f"words_per_minute must be a positive integer, got {words_per_minute!r}")

        build_workers = data.get("build_workers", 0)
        if isinstance(build_workers, bool) or not isinstance(build_workers, int) or build_workers < 0:
            raise ConfigError(f"build_workers must be a non-negative integer, got {build_workers!r}")

        markdown_ext = data.get("markdown_ext")
        if markdown_ext is None:
            extensions = DEFAULT_MARKDOWN_EXT
        else:
            extensions = tuple(
                item.strip().lstrip(".").lower() for item in _string_list(markdown_ext, "markdown_ext") if item.strip()
            )
            if not extensions:
                raise ConfigError("markdown_ext must name at least one extension")

        return cls(
            title=_string(data, "title", ""),
            description=_string(data, "description", "").strip(),
            url=_string(data, "url", "").rstrip("/"),
            baseurl=_string(data, "baseurl", "").rstrip("/"),
            permalink=pattern,
            paginate=paginate,
            paginate_path=paginate_path,
            include=DEFAULT_INCLUDE + _string_list(data.get("include", []), "include"),
            exclude=DEFAULT_EXCLUDE + _string_list(data.get("exclude", []), "exclude"),
            destination=_string(data, "destination", "_site"),
            plugins=_string_list(data.get("plugins", []), "plugins"),
            defaults=_parse_defaults(data.get("defaults", [])),
            category_archive_path=_archive_path(data, "category_archive", "/categories/"),
            tag_archive_path=_archive_path(data, "tag_archive", "/tags/"),
            words_per_minute=words_per_minute,
            markdown_ext=extensions,
            build_workers=build_workers,
            extra={key: value for key, value in data.items() if key not in RECOGNIZED_KEYS},
        )

    def has_plugin(self, name: str) -> bool:
        return name in self.plugins

    def defaults_for(self, relative_path: str, kind: str) -> dict:
        matching = [item for item in self.defaults if item.matches(relative_path, kind)]
        matching.sort(key=lambda item: len(item.path.strip("/")))
        merged: dict = {}
        for item in matching:
            merged.update(item.values)
        return merged

    def as_context(self) -> dict:
        context = dict(self.extra)
        context.update(
            {
                "title": self.title,
                "description": self.description,
                "url": self.url,
                "baseurl": self.baseurl,
                "category_archive_path": self.category_archive_path,
                "tag_archive_path": self.tag_archive_path,
            }
        )
        return context


def _string(data: dict, key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    return str(value)


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item for item in value.split(",") if item.strip()) if key == "markdown_ext" else (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"{key} must be a list of strings, got {value!r}")


def _archive_path(data: dict, key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping, got {value!r}")
    path = value.get("path", default)
    if not isinstance(path, str) or not path.strip("/"):
        raise ConfigError(f"{key}.path must be a non-root path, got {path!r}")
    return "/" + path.strip("/") + "/"


def _parse_defaults(value: Any) -> tuple[FrontMatterDefault, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"defaults must be a list, got {value!r}")
    parsed = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ConfigError(f"defaults entries must be mappings, got {entry!r}")
        scope = entry.get("scope") or {}
        values = entry.get("values") or {}
        if not isinstance(scope, dict) or not isinstance(values, dict):
            raise ConfigError(f"defaults entry needs mapping scope and values: {entry!r}")
        path = scope.get("path", "")
        kind = scope.get("type")
        if not isinstance(path, str) or (kind is not None and not isinstance(kind, str)):
            raise ConfigError(f"defaults scope path and type must be strings: {scope!r}")
        parsed.append(FrontMatterDefault(path=path, type=kind, values=dict(values)))
    return tuple(parsed)
