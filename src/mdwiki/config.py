"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from mdwiki.security import SecurityLimits

CONFIG_FILENAME = "mdwiki.toml"

MAX_FILE_BYTES_CAP = 16 * 1024 * 1024
MAX_TOTAL_BYTES_PER_RESPONSE_CAP = 4 * 1024 * 1024
MAX_SEARCH_HITS_CAP = 200

DEFAULT_EXTENSION = ".md"
DEFAULT_EXCLUDE_GLOBS = ("**/node_modules/**", "**/__pycache__/**")
DEFAULT_INDEX_NAMES = ("index", "readme")
DEFAULT_MARKDOWN_EXTENSIONS = ("extra", "sane_lists")
DUPLICATE_POLICIES = ("error", "rename")


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Which files of the content root become documents."""

    extension: str = DEFAULT_EXTENSION
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    index_names: tuple[str, ...] = DEFAULT_INDEX_NAMES


@dataclass(slots=True, frozen=True)
class TreeConfig:
    """Navigation tree construction policy."""

    on_duplicate: str = "error"
    sections_first: bool = False


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Tokenization and ranking settings."""

    title_weight: float = 5.0
    body_weight: float = 1.0
    max_results: int = 20
    min_token_length: int = 2
    stopwords: tuple[str, ...] | None = None
    extra_stopwords: tuple[str, ...] = ()
    stemming: bool = True
    snippet_chars: int = 160


@dataclass(slots=True, frozen=True)
class MarkdownConfig:
    """Python-Markdown extensions used by the default renderer."""

    extensions: tuple[str, ...] = DEFAULT_MARKDOWN_EXTENSIONS


@dataclass(slots=True, frozen=True)
class WikiConfig:
    """Fully merged configuration."""

    content_root: Path
    data_dir: Path
    limits: SecurityLimits
    index: IndexConfig
    tree: TreeConfig
    search: SearchConfig
    markdown: MarkdownConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "content_root": str(self.content_root),
            "data_dir": str(self.data_dir),
            "limits": {
                "max_file_bytes": self.limits.max_file_bytes,
                "max_total_bytes_per_response": self.limits.max_total_bytes_per_response,
                "max_search_hits": self.limits.max_search_hits,
            },
            "index": {
                "extension": self.index.extension,
                "exclude_globs": list(self.index.exclude_globs),
                "index_names": list(self.index.index_names),
            },
            "tree": {
                "on_duplicate": self.tree.on_duplicate,
                "sections_first": self.tree.sections_first,
            },
            "search": {
                "title_weight": self.search.title_weight,
                "body_weight": self.search.body_weight,
                "max_results": self.search.max_results,
                "min_token_length": self.search.min_token_length,
                "custom_stopwords": self.search.stopwords is not None,
                "extra_stopwords": list(self.search.extra_stopwords),
                "stemming": self.search.stemming,
                "snippet_chars": self.search.snippet_chars,
            },
            "markdown": {
                "extensions": list(self.markdown.extensions),
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    max_file_bytes: int | None = None
    max_total_bytes_per_response: int | None = None
    max_search_hits: int | None = None
    max_results: int | None = None
    on_duplicate: str | None = None


def default_config(content_root: Path) -> WikiConfig:
    """Build default config for a given content root."""
    resolved_root = content_root.resolve()
    return WikiConfig(
        content_root=resolved_root,
        data_dir=resolved_root / ".mdwiki",
        limits=SecurityLimits(),
        index=IndexConfig(),
        tree=TreeConfig(),
        search=SearchConfig(),
        markdown=MarkdownConfig(),
    )


def load_config_file(content_root: Path) -> dict[str, object]:
    """Load optional mdwiki.toml from the content root."""
    config_path = content_root / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILENAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_weight(value: object, name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"Config field '{name}' must be a positive number.")
    return float(value)


def _optional_duplicate_policy(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if value not in DUPLICATE_POLICIES:
        raise ValueError(f"Config field '{name}' must be one of {', '.join(DUPLICATE_POLICIES)}.")
    return str(value)


def _normalize_extension(value: str) -> str:
    lowered = value.strip().lower()
    if not lowered or lowered == ".":
        raise ValueError("Config field 'index.extension' must be a file extension.")
    return lowered if lowered.startswith(".") else f".{lowered}"


def merge_config(
    base: WikiConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> WikiConfig:
    """Merge defaults, mdwiki.toml, then CLI/startup overrides."""
    limits_payload = _get_table(file_payload, "limits")
    index_payload = _get_table(file_payload, "index")
    tree_payload = _get_table(file_payload, "tree")
    search_payload = _get_table(file_payload, "search")
    markdown_payload = _get_table(file_payload, "markdown")

    limits = SecurityLimits(
        max_file_bytes=_optional_positive_int_with_cap(
            limits_payload.get("max_file_bytes"),
            "limits.max_file_bytes",
            base.limits.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        max_total_bytes_per_response=_optional_positive_int_with_cap(
            limits_payload.get("max_total_bytes_per_response"),
            "limits.max_total_bytes_per_response",
            base.limits.max_total_bytes_per_response,
            MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
        ),
        max_search_hits=_optional_positive_int_with_cap(
            limits_payload.get("max_search_hits"),
            "limits.max_search_hits",
            base.limits.max_search_hits,
            MAX_SEARCH_HITS_CAP,
        ),
    )

    extension = base.index.extension
    if "extension" in index_payload:
        raw_extension = index_payload["extension"]
        if not isinstance(raw_extension, str):
            raise ValueError("Config field 'index.extension' must be a string.")
        extension = _normalize_extension(raw_extension)
    exclude_globs = base.index.exclude_globs
    if "exclude_globs" in index_payload:
        exclude_globs = _tuple_of_strings(index_payload["exclude_globs"], "index", "exclude_globs")
    index_names = base.index.index_names
    if "index_names" in index_payload:
        index_names = tuple(
            name.lower()
            for name in _tuple_of_strings(index_payload["index_names"], "index", "index_names")
        )

    tree = TreeConfig(
        on_duplicate=_optional_duplicate_policy(
            tree_payload.get("on_duplicate"), "tree.on_duplicate", base.tree.on_duplicate
        ),
        sections_first=_optional_bool(
            tree_payload.get("sections_first"), "tree.sections_first", base.tree.sections_first
        ),
    )

    stopwords = base.search.stopwords
    if "stopwords" in search_payload:
        stopwords = tuple(
            word.lower()
            for word in _tuple_of_strings(search_payload["stopwords"], "search", "stopwords")
        )
    extra_stopwords = base.search.extra_stopwords
    if "extra_stopwords" in search_payload:
        extra_stopwords = tuple(
            word.lower()
            for word in _tuple_of_strings(
                search_payload["extra_stopwords"], "search", "extra_stopwords"
            )
        )
    search = SearchConfig(
        title_weight=_optional_weight(
            search_payload.get("title_weight"), "search.title_weight", base.search.title_weight
        ),
        body_weight=_optional_weight(
            search_payload.get("body_weight"), "search.body_weight", base.search.body_weight
        ),
        max_results=_optional_positive_int_with_cap(
            search_payload.get("max_results"),
            "search.max_results",
            base.search.max_results,
            MAX_SEARCH_HITS_CAP,
        ),
        min_token_length=_optional_positive_int(
            search_payload.get("min_token_length"),
            "search.min_token_length",
            base.search.min_token_length,
        ),
        stopwords=stopwords,
        extra_stopwords=extra_stopwords,
        stemming=_optional_bool(
            search_payload.get("stemming"), "search.stemming", base.search.stemming
        ),
        snippet_chars=_optional_positive_int(
            search_payload.get("snippet_chars"),
            "search.snippet_chars",
            base.search.snippet_chars,
        ),
    )
    if search.title_weight <= search.body_weight:
        raise ValueError("Config field 'search.title_weight' must be greater than body_weight.")

    markdown_extensions = base.markdown.extensions
    if "extensions" in markdown_payload:
        markdown_extensions = _tuple_of_strings(
            markdown_payload["extensions"], "markdown", "extensions"
        )

    merged = WikiConfig(
        content_root=base.content_root,
        data_dir=base.data_dir,
        limits=limits,
        index=IndexConfig(
            extension=extension,
            exclude_globs=exclude_globs,
            index_names=index_names,
        ),
        tree=tree,
        search=search,
        markdown=MarkdownConfig(extensions=markdown_extensions),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: WikiConfig, overrides: CliOverrides) -> WikiConfig:
    """Apply startup overrides at highest precedence."""
    limits = SecurityLimits(
        max_file_bytes=_optional_positive_int_with_cap(
            overrides.max_file_bytes,
            "overrides.max_file_bytes",
            config.limits.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        max_total_bytes_per_response=_optional_positive_int_with_cap(
            overrides.max_total_bytes_per_response,
            "overrides.max_total_bytes_per_response",
            config.limits.max_total_bytes_per_response,
            MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
        ),
        max_search_hits=_optional_positive_int_with_cap(
            overrides.max_search_hits,
            "overrides.max_search_hits",
            config.limits.max_search_hits,
            MAX_SEARCH_HITS_CAP,
        ),
    )
    search = config.search
    if overrides.max_results is not None:
        search = SearchConfig(
            title_weight=search.title_weight,
            body_weight=search.body_weight,
            max_results=_optional_positive_int_with_cap(
                overrides.max_results,
                "overrides.max_results",
                search.max_results,
                MAX_SEARCH_HITS_CAP,
            ),
            min_token_length=search.min_token_length,
            stopwords=search.stopwords,
            extra_stopwords=search.extra_stopwords,
            stemming=search.stemming,
            snippet_chars=search.snippet_chars,
        )
    tree = TreeConfig(
        on_duplicate=_optional_duplicate_policy(
            overrides.on_duplicate, "overrides.on_duplicate", config.tree.on_duplicate
        ),
        sections_first=config.tree.sections_first,
    )
    data_dir = overrides.data_dir or config.data_dir
    return WikiConfig(
        content_root=config.content_root,
        data_dir=data_dir.resolve(),
        limits=limits,
        index=config.index,
        tree=tree,
        search=search,
        markdown=config.markdown,
    )


def load_effective_config(content_root: Path, overrides: CliOverrides | None = None) -> WikiConfig:
    """Load effective config using merge order defaults -> mdwiki.toml -> overrides."""
    resolved_root = content_root.resolve()
    base = default_config(resolved_root)
    payload = load_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _optional_positive_int(value: object, name: str, default: int) -> int:
    return _optional_positive_int_with_cap(value, name, default, cap=None)


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
