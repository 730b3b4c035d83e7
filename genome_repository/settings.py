"""Project settings loaded from pyproject.toml [tool.genome-repository] section.

Configuration is organized into subsections:
  [tool.genome-repository.index]       : search cluster URL, alias, retention, bulk sizing
  [tool.genome-repository.identity]    : id service URL, token, real-ids, read-only, barcodes
  [tool.genome-repository.publication] : provenance overrides (released / pre-release)
  [tool.genome-repository.merge]       : combine priority, harmonization study tag
  [tool.genome-repository.membership]  : harmonized / registry donor list locations
  [tool.genome-repository.sources.<code>]: per-source location and processor

All scalar settings support environment variable overrides (GENOME_REPOSITORY_* prefix).
"""

import importlib.resources
import os
import tomllib
from functools import cache
from pathlib import Path


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.genome-repository] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        files = importlib.resources.files("genome_repository")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        if not pyproject_path.is_file():  # type: ignore[union-attr]
            # Walk up to find pyproject.toml (for development)
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        content = pyproject_path.read_text()  # type: ignore[union-attr]
        data = tomllib.loads(content)
        return data.get("tool", {}).get("genome-repository", {})
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def _get_section(section: str) -> dict:
    """Get a subsection from [tool.genome-repository.{section}]."""
    return _load_pyproject_settings().get(section, {})


def _parse_bool(value: str | bool) -> bool:
    """Parse a boolean from env var text or TOML value."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str | list) -> list[str]:
    """Parse a comma-separated env var or TOML list."""
    if isinstance(value, list):
        return [str(v) for v in value]
    return [v.strip() for v in str(value).split(",") if v.strip()]


# ─── Paths ──────────────────────────────────────────────────────────────────

DATA_BASE_DIR = Path.home() / ".local" / "share" / "genome-repository"


def get_work_dir() -> Path:
    """Directory holding per-source and merged record snapshots.

    Priority: GENOME_REPOSITORY_WORK_DIR env → [tool.genome-repository].work-dir
              → ~/.local/share/genome-repository/work
    """
    if env := os.getenv("GENOME_REPOSITORY_WORK_DIR"):
        return Path(env)
    configured = _load_pyproject_settings().get("work-dir")
    return Path(configured) if configured else DATA_BASE_DIR / "work"


# ─── Index settings ─────────────────────────────────────────────────────────

DEFAULT_INDEX_ALIAS = "repository"
DEFAULT_INDEX_URL = "http://localhost:9200"
DEFAULT_RETAIN = 3
DEFAULT_BULK_ACTIONS = 1000
DEFAULT_BULK_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_BULK_CONCURRENCY = 1


def get_index_url() -> str:
    """Search cluster URL.

    Priority: GENOME_REPOSITORY_INDEX_URL env → [index].url → http://localhost:9200.
    """
    if env := os.getenv("GENOME_REPOSITORY_INDEX_URL"):
        return env
    return _get_section("index").get("url", DEFAULT_INDEX_URL)


def get_index_alias() -> str:
    """Well-known public alias that always points at the serving generation."""
    if env := os.getenv("GENOME_REPOSITORY_INDEX_ALIAS"):
        return env
    return _get_section("index").get("alias", DEFAULT_INDEX_ALIAS)


def get_index_retain() -> int:
    """Number of generations kept after pruning (newest first)."""
    if env := os.getenv("GENOME_REPOSITORY_INDEX_RETAIN"):
        return int(env)
    return int(_get_section("index").get("retain", DEFAULT_RETAIN))


def get_bulk_actions() -> int:
    """Maximum documents per bulk batch."""
    if env := os.getenv("GENOME_REPOSITORY_BULK_ACTIONS"):
        return int(env)
    return int(_get_section("index").get("bulk-actions", DEFAULT_BULK_ACTIONS))


def get_bulk_bytes() -> int:
    """Maximum serialized bytes per bulk batch."""
    if env := os.getenv("GENOME_REPOSITORY_BULK_BYTES"):
        return int(env)
    return int(_get_section("index").get("bulk-bytes", DEFAULT_BULK_BYTES))


def get_bulk_concurrency() -> int:
    """Number of bulk batches allowed in flight at once."""
    if env := os.getenv("GENOME_REPOSITORY_BULK_CONCURRENCY"):
        return int(env)
    return int(_get_section("index").get("bulk-concurrency", DEFAULT_BULK_CONCURRENCY))


def get_index_timeout() -> float:
    """Per-request timeout (seconds) for the search cluster client."""
    if env := os.getenv("GENOME_REPOSITORY_INDEX_TIMEOUT"):
        return float(env)
    return float(_get_section("index").get("timeout", 60.0))


def get_archive_dir() -> Path | None:
    """Optional directory for tar.gz exports of every indexed document."""
    if env := os.getenv("GENOME_REPOSITORY_ARCHIVE_DIR"):
        return Path(env)
    configured = _get_section("index").get("archive-dir")
    return Path(configured) if configured else None


# ─── Identity settings ──────────────────────────────────────────────────────

DEFAULT_ID_SERVICE_URL = "http://localhost:5391/api"

# Projects whose archives submit legacy barcodes to one namespace and
# UUIDs to the other.
DEFAULT_BARCODE_PROJECTS = (
    "BLCA-US",
    "BRCA-US",
    "CESC-US",
    "COAD-US",
    "GBM-US",
    "HNSC-US",
    "KICH-US",
    "KIRC-US",
    "KIRP-US",
    "LAML-US",
    "LGG-US",
    "LIHC-US",
    "LUAD-US",
    "LUSC-US",
    "OV-US",
    "PAAD-US",
    "PRAD-US",
    "READ-US",
    "SARC-US",
    "SKCM-US",
    "STAD-US",
    "THCA-US",
    "UCEC-US",
)


def get_id_service_url() -> str:
    """Identity service base URL."""
    if env := os.getenv("GENOME_REPOSITORY_ID_URL"):
        return env
    return _get_section("identity").get("service-url", DEFAULT_ID_SERVICE_URL)


def get_id_auth_token() -> str | None:
    """Bearer token for the identity service (never stored in pyproject)."""
    return os.getenv("GENOME_REPOSITORY_ID_TOKEN") or None


def get_real_ids() -> bool:
    """Use the HTTP identity service instead of local hash-derived ids."""
    if env := os.getenv("GENOME_REPOSITORY_REAL_IDS"):
        return _parse_bool(env)
    return _parse_bool(_get_section("identity").get("real-ids", False))


def get_read_only() -> bool:
    """Resolver-wide read-only flag: ensure() never mints new ids."""
    if env := os.getenv("GENOME_REPOSITORY_READ_ONLY"):
        return _parse_bool(env)
    return _parse_bool(_get_section("identity").get("read-only", False))


def get_barcode_service_url() -> str | None:
    """Barcode <-> UUID translation service base URL (None disables translation)."""
    if env := os.getenv("GENOME_REPOSITORY_BARCODE_URL"):
        return env
    return _get_section("identity").get("barcode-service-url")


def get_barcode_projects() -> frozenset[str]:
    """Project codes whose submitted ids may need barcode/UUID translation."""
    if env := os.getenv("GENOME_REPOSITORY_BARCODE_PROJECTS"):
        return frozenset(_parse_list(env))
    configured = _get_section("identity").get("barcode-projects")
    if configured is None:
        return frozenset(DEFAULT_BARCODE_PROJECTS)
    return frozenset(_parse_list(configured))


def get_id_timeout() -> float:
    """Per-request timeout (seconds) for identity and barcode services."""
    if env := os.getenv("GENOME_REPOSITORY_ID_TIMEOUT"):
        return float(env)
    return float(_get_section("identity").get("timeout", 30.0))


# ─── Membership settings ────────────────────────────────────────────────────


def get_harmonized_donors_location() -> str | None:
    """File path or URL listing donors known to the harmonization study."""
    if env := os.getenv("GENOME_REPOSITORY_HARMONIZED_DONORS"):
        return env
    return _get_section("membership").get("harmonized-donors")


def get_registry_donors_location() -> str | None:
    """File path or URL listing donors known to the core clinical registry."""
    if env := os.getenv("GENOME_REPOSITORY_REGISTRY_DONORS"):
        return env
    return _get_section("membership").get("registry-donors")


# ─── Merge / publication settings ───────────────────────────────────────────

DEFAULT_PRIORITY = ("pcawg", "ega", "gdc", "pdc", "aws", "collab", "tcga", "cghub")
DEFAULT_HARMONIZATION_STUDY = "PCAWG"


def get_merge_priority() -> tuple[str, ...]:
    """Source names in completeness-priority order (most complete first)."""
    if env := os.getenv("GENOME_REPOSITORY_MERGE_PRIORITY"):
        return tuple(_parse_list(env))
    configured = _get_section("merge").get("priority")
    return tuple(_parse_list(configured)) if configured else DEFAULT_PRIORITY


def get_harmonization_study() -> str:
    """Study tag given to donors and records known to the harmonization study."""
    if env := os.getenv("GENOME_REPOSITORY_HARMONIZATION_STUDY"):
        return env
    return _get_section("merge").get("harmonization-study", DEFAULT_HARMONIZATION_STUDY)


def get_released_overrides() -> frozenset[str]:
    """Repo codes or source names forced into the released provenance class."""
    if env := os.getenv("GENOME_REPOSITORY_RELEASED"):
        return frozenset(_parse_list(env))
    return frozenset(_parse_list(_get_section("publication").get("released", [])))


def get_pre_release_overrides() -> frozenset[str]:
    """Repo codes or source names forced into the pre-release provenance class."""
    if env := os.getenv("GENOME_REPOSITORY_PRE_RELEASE"):
        return frozenset(_parse_list(env))
    return frozenset(_parse_list(_get_section("publication").get("pre-release", [])))


# ─── Sources ────────────────────────────────────────────────────────────────


def get_source_configs() -> dict[str, dict]:
    """Per-source extraction settings keyed by source code.

    Each entry has ``location`` (file, directory or URL) and ``processor``
    (a key of :data:`genome_repository.sources.PROCESSORS`, default ``json``).
    """
    return {
        code: dict(section)
        for code, section in _get_section("sources").items()
        if isinstance(section, dict)
    }


def get_notify_enabled() -> bool:
    """Send the end-of-run summary through the configured notifier."""
    if env := os.getenv("GENOME_REPOSITORY_NOTIFY"):
        return _parse_bool(env)
    return _parse_bool(_get_section("notify").get("enabled", True))
