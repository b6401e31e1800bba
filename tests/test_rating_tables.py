"""Tests for alias / fallback tables and their loader."""

import json

import pytest

from ratings_api.services.errors import InvalidProviderKey
from ratings_api.services.rating_tables import (
    AliasTable,
    FallbackTable,
    RatingTables,
    default_rating_tables,
    load_rating_tables,
)
from ratings_api.services.records import RatingPlatform


class TestAliasTable:
    def test_canonical_keys_map_to_themselves(self):
        table = AliasTable.from_dict({"TransferWise": "Wise", "xe-money": "xe"})
        assert table.resolve("transferwise") == "wise"
        assert table.resolve("xemoney") == "xe"
        assert table.resolve("wise") == "wise"
        assert table.resolve("xe") == "xe"
        assert table.canonical_keys == {"wise", "xe"}

    def test_same_alias_same_target_is_allowed(self):
        table = AliasTable.from_dict({"panda": "pandaremit", "Panda": "panda-remit"})
        assert table.resolve("panda") == "pandaremit"

    def test_alias_with_two_targets_rejected(self):
        with pytest.raises(ValueError, match="maps to both"):
            AliasTable.from_dict({"tor": "torfx", "TOR": "tor-bank"})

    def test_alias_chain_rejected(self):
        with pytest.raises(ValueError, match="itself an alias"):
            AliasTable.from_dict({"transferwise": "wise", "wise": "wisecom"})

    def test_empty_entry_rejected(self):
        with pytest.raises(ValueError):
            AliasTable.from_dict({"---": "wise"})


class TestFallbackTable:
    def test_keys_are_normalized_and_alias_resolved(self):
        aliases = AliasTable.from_dict({"transferwise": "wise"})
        table = FallbackTable.from_dict({"TransferWise": 4.5, "Western Union": 4}, aliases)
        assert table.get("wise") == 4.5
        assert table.get("westernunion") == 4.0
        assert "transferwise" not in table

    @pytest.mark.parametrize("value", [5.1, -0.1, "4.0", None, float("nan")])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValueError):
            FallbackTable.from_dict({"wise": value})

    def test_empty_key_rejected(self):
        with pytest.raises(InvalidProviderKey):
            FallbackTable.from_dict({"---": 4.0})


class TestDefaultTables:
    def test_google_fallbacks_cover_listing_less_providers(self):
        tables = default_rating_tables()
        google = tables.fallbacks_for(RatingPlatform.GOOGLE)
        assert google.get("westernunion") == 4.0
        assert google.get("ofx") == 4.0

    def test_trustpilot_fallbacks(self):
        tables = default_rating_tables()
        trustpilot = tables.fallbacks_for(RatingPlatform.TRUSTPILOT)
        assert trustpilot.get("regencyfx") == 4.9
        assert trustpilot.get("torfx") == 4.4

    def test_legacy_names_resolve(self):
        tables = default_rating_tables()
        assert tables.aliases.resolve("transferwise") == "wise"
        assert tables.aliases.resolve("skrillmoneytransfer") == "skrill"

    def test_trustpilot_domains_keyed_by_canonical_key(self):
        tables = default_rating_tables()
        assert tables.trustpilot_domains["wise"] == "wise.com"
        assert tables.trustpilot_domains["torfx"] == "www.torfx.com"

    def test_refresh_providers_unique_per_key(self):
        tables = default_rating_tables()
        keys = [tables.aliases.resolve(s.replace("-", "")) for s in tables.refresh_providers]
        assert len(keys) == len(set(keys))


class TestRatingTablesFromDict:
    def test_missing_sections_use_defaults(self):
        tables = RatingTables.from_dict({"version": "test-1", "aliases": {"transferwise": "wise"}})
        assert tables.version == "test-1"
        assert tables.fallbacks_for(RatingPlatform.GOOGLE).get("ofx") == 4.0

    def test_fallbacks_section_replaces_all_platforms(self):
        tables = RatingTables.from_dict({"fallbacks": {"trustpilot": {"wise": 4.7}}})
        assert tables.fallbacks_for(RatingPlatform.TRUSTPILOT).get("wise") == 4.7
        assert len(tables.fallbacks_for(RatingPlatform.GOOGLE)) == 0

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValueError, match="Unknown rating platform"):
            RatingTables.from_dict({"fallbacks": {"yelp": {"wise": 4.0}}})

    def test_refresh_list_deduplicated_through_aliases(self):
        tables = RatingTables.from_dict(
            {"aliases": {"transferwise": "wise"}, "refresh_providers": ["wise", "transferwise", "xe"]}
        )
        assert tables.refresh_providers == ("wise", "xe")


class TestLoadRatingTables:
    def test_no_path_loads_defaults(self):
        tables = load_rating_tables(None)
        assert tables.aliases.resolve("transferwise") == "wise"

    def test_loads_json_file(self, tmp_path):
        path = tmp_path / "tables.json"
        path.write_text(
            json.dumps(
                {
                    "version": "2025-04-01",
                    "aliases": {"transferwise": "wise"},
                    "fallbacks": {"trustpilot": {"wise": 4.7}, "google": {}},
                    "trustpilot_domains": {"Wise": "wise.com"},
                    "refresh_providers": ["wise"],
                }
            ),
            encoding="utf-8",
        )
        tables = load_rating_tables(str(path))
        assert tables.version == "2025-04-01"
        assert tables.fallbacks_for(RatingPlatform.TRUSTPILOT).get("wise") == 4.7
        assert dict(tables.trustpilot_domains) == {"wise": "wise.com"}
        assert tables.refresh_providers == ("wise",)

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "tables.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_rating_tables(str(path))
