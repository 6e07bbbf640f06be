"""
Known subscription service catalog.

The catalog is loaded from data/known_services.md, a markdown table of
``| keyword | name | icon |`` rows plus a ``Version:`` line. It is read once
at import time and exposed as an immutable, ordered mapping.
"""
import re
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from core.logger import setup_logger
from core.schema import KnownService

logger = setup_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "known_services.md"

_VERSION_RE = re.compile(r"^\s*version\s*:\s*(\S+)", re.IGNORECASE)


class ServiceCatalog(NamedTuple):
    """Versioned keyword -> KnownService table."""
    version: Optional[str]
    services: Mapping[str, KnownService]


def parse_catalog_line(line: str) -> Optional[KnownService]:
    """
    Parse a single row of the known services markdown table.

    Args:
        line: Line from markdown file

    Returns:
        KnownService if the row is a valid entry, None otherwise
    """
    # Skip separator lines and non-table lines
    if not line or "|" not in line or line.strip().startswith("|:-"):
        return None

    # Format: | KEYWORD | NAME | ICON |
    parts = [p.strip() for p in line.strip().split("|")]
    if len(parts) < 5:
        return None

    keyword, name, icon = parts[1], parts[2], parts[3]
    if not keyword or not name or not icon or keyword.lower() == "keyword":
        return None

    try:
        return KnownService(keyword=keyword, name=name, icon=icon)
    except PydanticValidationError as e:
        logger.warning(f"Skipping invalid catalog row '{line.strip()}': {e.error_count()} error(s)")
        return None


def load_known_services(path: Optional[Union[str, Path]] = None) -> ServiceCatalog:
    """
    Load the known service catalog from a markdown file.

    Args:
        path: Catalog file (defaults to the bundled data/known_services.md)

    Returns:
        ServiceCatalog, empty when the file is missing or unreadable
    """
    data_file = Path(path) if path else DEFAULT_CATALOG_PATH

    if not data_file.exists():
        logger.warning(f"Known services file not found: {data_file}")
        logger.warning("Detection will operate without a known service catalog")
        return ServiceCatalog(None, MappingProxyType({}))

    try:
        lines = data_file.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read known services file {data_file}: {e}")
        return ServiceCatalog(None, MappingProxyType({}))

    version = None
    services = {}
    for line in lines:
        if version is None:
            match = _VERSION_RE.match(line)
            if match:
                version = match.group(1)
                continue

        service = parse_catalog_line(line)
        if service is None:
            continue
        if service.keyword in services:
            logger.warning(f"Duplicate catalog keyword '{service.keyword}', keeping first entry")
            continue
        services[service.keyword] = service

    if services:
        logger.info(f"Loaded {len(services)} known services (version {version or 'unversioned'})")
    else:
        logger.warning("No known services loaded from catalog file")

    return ServiceCatalog(version, MappingProxyType(services))


# Bundled catalog, loaded once at process start
DEFAULT_CATALOG = load_known_services()
