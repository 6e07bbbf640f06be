"""
Unit tests for the known service catalog loader.
"""
import pytest

from core.catalog import DEFAULT_CATALOG, load_known_services, parse_catalog_line


def test_default_catalog_loaded():
    assert DEFAULT_CATALOG.version == "2025.10"
    netflix = DEFAULT_CATALOG.services["netflix"]
    assert netflix.name == "Netflix"
    assert netflix.icon == "🎬"
    assert DEFAULT_CATALOG.services["edf"].name == "EDF"
    assert DEFAULT_CATALOG.services["amazon prime"].name == "Amazon Prime"


def test_default_catalog_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_CATALOG.services["new"] = DEFAULT_CATALOG.services["netflix"]


def test_catalog_keeps_table_order():
    keywords = list(DEFAULT_CATALOG.services)
    assert keywords[0] == "netflix"
    assert keywords.index("amazon prime") < keywords.index("canal")


def test_parse_catalog_line():
    service = parse_catalog_line("| Basic  Fit | Basic Fit | 💪 |")
    assert service.keyword == "basic fit"
    assert service.name == "Basic Fit"

    assert parse_catalog_line("|:-|:-|:-|") is None
    assert parse_catalog_line("| Keyword | Name | Icon |") is None
    assert parse_catalog_line("Some prose line") is None
    assert parse_catalog_line("| onlyone |") is None


def test_load_custom_catalog(tmp_path):
    path = tmp_path / "services.md"
    path.write_text(
        "Version: 7\n\n"
        "| Keyword | Name | Icon |\n"
        "|:-|:-|:-|\n"
        "| salle escalade | Climbing Gym | 🧗 |\n"
        "| salle escalade | Duplicate | X |\n"
        "| mutuelle | Mutuelle Santé | 🏥 |\n",
        encoding="utf-8",
    )

    catalog = load_known_services(path)
    assert catalog.version == "7"
    assert list(catalog.services) == ["salle escalade", "mutuelle"]
    assert catalog.services["salle escalade"].name == "Climbing Gym"


def test_load_missing_catalog(tmp_path):
    catalog = load_known_services(tmp_path / "missing.md")
    assert catalog.version is None
    assert len(catalog.services) == 0
