"""Loading utilities for scheme catalog snapshots.

Reads scheme definitions produced by the external ingestion pipeline
(or the bundled ``central_schemes.json`` sample) and freezes them into a
:class:`~setu.services.catalog.SchemeCatalog`.  Designed to run at
application startup and on every admin-triggered reload.
"""

from __future__ import annotations

from pathlib import Path

import orjson
import pydantic
import structlog

from setu.exceptions import CatalogIntegrityError
from setu.models.scheme import Scheme
from setu.services.catalog import SchemeCatalog

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DATA_DIR: Path = Path(__file__).resolve().parent / "schemes"
_BUNDLED_CATALOG_PATH: Path = _DATA_DIR / "central_schemes.json"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_schemes(path: Path | None = None) -> list[Scheme]:
    """Parse and validate scheme definitions from a catalog JSON file.

    Parameters
    ----------
    path:
        Catalog file to read.  Defaults to the bundled
        ``central_schemes.json``.

    Returns
    -------
    list[Scheme]
        Parsed and validated schemes.  Entries that fail validation are
        logged and skipped.

    Raises
    ------
    FileNotFoundError
        If the JSON file does not exist.
    CatalogIntegrityError
        If the file is not valid JSON.
    """
    file_path = path or _BUNDLED_CATALOG_PATH

    if not file_path.exists():
        raise FileNotFoundError(f"Scheme data file not found: {file_path}")

    try:
        raw_schemes: list[dict] = orjson.loads(file_path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise CatalogIntegrityError(
            f"Scheme data file is not valid JSON: {file_path}", details={"path": str(file_path)}
        ) from exc

    schemes: list[Scheme] = []
    for raw in raw_schemes:
        try:
            schemes.append(Scheme.model_validate(raw))
        except pydantic.ValidationError as exc:
            logger.warning(
                "seed.parse_error",
                scheme_id=raw.get("scheme_id", "unknown"),
                errors=exc.error_count(),
            )

    logger.info("seed.loaded_schemes", count=len(schemes), source=str(file_path))
    return schemes


def load_catalog(path: Path | None = None, *, version: str | None = None) -> SchemeCatalog:
    """Load schemes from JSON and build a validated catalog snapshot.

    The version defaults to the file name plus its modification time so
    successive reloads of an updated file produce distinct versions.
    """
    file_path = path or _BUNDLED_CATALOG_PATH
    schemes = load_schemes(file_path)
    if version is None:
        version = f"{file_path.stem}@{int(file_path.stat().st_mtime)}"
    return SchemeCatalog.build(schemes, version=version)
