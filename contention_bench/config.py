r"""
Run configuration defaults and the preset URL-set catalog.

Presets mirror a catalog file of the form:

    {
      "defaultContextCount": 5,
      "urls": ["https://..."],
      "testSets": {"jquery": {"name": "jQuery", "urls": ["https://..."]}}
    }

(``defaultIframeCount`` is accepted as an alias of ``defaultContextCount``.)

    from contention_bench.config import PRESETS, get_preset

    urls = get_preset("frameworks").urls
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from contention_bench.errors import CatalogError, ConfigurationError
from contention_bench.types import TestConfiguration, UrlSet

# Look for .env in current dir, then next to the package
_env_file = Path(".env")
if not _env_file.exists():
    _env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

__all__ = [
    "DEFAULT_CONTEXT_COUNT",
    "DEFAULT_SPAWN_DELAY_MS",
    "DEFAULT_URLS",
    "ENV_PREFIX",
    "PRESETS",
    "UrlCatalog",
    "default_catalog",
    "default_configuration",
    "get_env",
    "get_preset",
    "load_catalog",
    "parse_url_list",
]

ENV_PREFIX = "CONTENTION_BENCH_"

DEFAULT_CONTEXT_COUNT = 5
DEFAULT_SPAWN_DELAY_MS = 0

# Popular CDN-hosted scripts of varying size
PRESETS: dict[str, UrlSet] = {
    "frameworks": UrlSet(
        name="JS frameworks",
        urls=(
            "https://cdnjs.cloudflare.com/ajax/libs/react/18.2.0/umd/react.production.min.js",
            "https://cdnjs.cloudflare.com/ajax/libs/react-dom/18.2.0/umd/react-dom.production.min.js",
            "https://cdnjs.cloudflare.com/ajax/libs/vue/3.3.4/vue.global.prod.min.js",
        ),
    ),
    "utilities": UrlSet(
        name="Utility libraries",
        urls=(
            "https://cdnjs.cloudflare.com/ajax/libs/jquery/3.7.1/jquery.min.js",
            "https://cdnjs.cloudflare.com/ajax/libs/lodash.js/4.17.21/lodash.min.js",
            "https://cdnjs.cloudflare.com/ajax/libs/moment.js/2.29.4/moment.min.js",
        ),
    ),
    "charts": UrlSet(
        name="Charting",
        urls=(
            "https://cdnjs.cloudflare.com/ajax/libs/Chart.js/4.4.0/chart.umd.min.js",
            "https://cdnjs.cloudflare.com/ajax/libs/d3/7.8.5/d3.min.js",
        ),
    ),
}

DEFAULT_URLS: tuple[str, ...] = PRESETS["utilities"].urls


@dataclass(frozen=True, slots=True)
class UrlCatalog:
    """Configuration source: defaults plus named preset URL sets.

    Attributes:
        default_context_count: Context count proposed for new runs.
        urls: Default resource URLs.
        sets: Preset URL sets by key.
    """

    default_context_count: int = DEFAULT_CONTEXT_COUNT
    urls: tuple[str, ...] = DEFAULT_URLS
    sets: dict[str, UrlSet] = field(default_factory=lambda: dict(PRESETS))

    def get(self, name: str) -> UrlSet:
        """Get a preset by key.

        Raises:
            ValueError: If the preset is not in the catalog.
        """
        if name not in self.sets:
            valid = ", ".join(self.sets.keys())
            msg = f"Unknown preset '{name}'. Valid presets: {valid}"
            raise ValueError(msg)
        return self.sets[name]


def default_catalog() -> UrlCatalog:
    """Catalog from ``CONTENTION_BENCH_CATALOG`` if set, else the built-ins."""
    path = get_env("CATALOG")
    if path:
        return load_catalog(path)
    return UrlCatalog()


def load_catalog(path: str | Path) -> UrlCatalog:
    """Load a catalog JSON file.

    Args:
        path: Path to the catalog file.

    Returns:
        UrlCatalog with the file's defaults and presets.

    Raises:
        CatalogError: If the file is missing or malformed.
    """
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read catalog {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {path} must be a JSON object")

    count = data.get("defaultContextCount", data.get("defaultIframeCount", DEFAULT_CONTEXT_COUNT))
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise CatalogError(f"Catalog {path}: default context count must be a positive integer")

    urls = _string_list(data.get("urls", []), f"{path}: urls")
    sets: dict[str, UrlSet] = {}
    raw_sets = data.get("testSets", {})
    if not isinstance(raw_sets, dict):
        raise CatalogError(f"Catalog {path}: testSets must be an object")
    for key, raw in raw_sets.items():
        if not isinstance(raw, dict):
            raise CatalogError(f"Catalog {path}: test set '{key}' must be an object")
        sets[key] = UrlSet(
            name=str(raw.get("name", key)),
            urls=_string_list(raw.get("urls", []), f"{path}: testSets.{key}.urls"),
        )

    return UrlCatalog(default_context_count=count, urls=urls, sets=sets)


def _string_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise CatalogError(f"{where} must be a list of strings")
    return tuple(v.strip() for v in value if v.strip())


def get_preset(name: str) -> UrlSet:
    """Get a built-in preset by key.

    Raises:
        ValueError: If preset name is not recognized.
    """
    return UrlCatalog().get(name)


def parse_url_list(text: str) -> tuple[str, ...]:
    """Split text into URLs, one per line, dropping blank lines."""
    return tuple(line.strip() for line in text.splitlines() if line.strip())


def get_env(key: str, *, default: str | None = None) -> str | None:
    """Get environment variable with CONTENTION_BENCH_ prefix.

    Args:
        key: Variable name without prefix (e.g., "DELAY_MS").
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(f"{ENV_PREFIX}{key}", default)


def _env_int(key: str, default: int) -> int:
    raw = get_env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None


def default_configuration(catalog: UrlCatalog | None = None) -> TestConfiguration:
    """Initial configuration from the catalog and environment.

    Honours ``CONTENTION_BENCH_CONTEXTS`` and ``CONTENTION_BENCH_DELAY_MS``.
    """
    catalog = catalog or default_catalog()
    return TestConfiguration(
        context_count=_env_int("CONTEXTS", catalog.default_context_count),
        resource_urls=catalog.urls,
        spawn_delay_ms=_env_int("DELAY_MS", DEFAULT_SPAWN_DELAY_MS),
    )
