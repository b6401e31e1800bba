"""Tests for provider name normalization."""

import pytest

from ratings_api.services.errors import InvalidProviderKey
from ratings_api.services.normalizer import (
    display_name_from_slug,
    normalize_provider_key,
    strip_provider_name,
)
from ratings_api.services.rating_tables import AliasTable


class TestNormalizeProviderKey:
    """Tests for canonical key computation."""

    def test_case_and_punctuation_variants_collapse(self):
        variants = [
            "Western Union",
            "western-union",
            "WESTERNUNION",
            "westernunion",
            "provider-western-union",
            "  Western_Union! ",
        ]
        assert {normalize_provider_key(v) for v in variants} == {"westernunion"}

    def test_prefix_is_case_insensitive(self):
        assert normalize_provider_key("Provider-Wise") == "wise"

    def test_prefix_only_stripped_at_start(self):
        assert normalize_provider_key("my-provider-wise") == "myproviderwise"

    def test_digits_kept(self):
        assert normalize_provider_key("Bank 24") == "bank24"

    @pytest.mark.parametrize("raw", ["", "   ", "---", "provider-", "!!", "é"])
    def test_empty_after_stripping_raises(self, raw):
        with pytest.raises(InvalidProviderKey):
            normalize_provider_key(raw)

    def test_invalid_key_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_provider_key("---")

    def test_alias_applied_after_stripping(self):
        aliases = AliasTable.from_dict({"transferwise": "wise"})
        assert normalize_provider_key("TransferWise", aliases) == "wise"
        assert normalize_provider_key("transfer-wise", aliases) == "wise"
        assert normalize_provider_key("wise", aliases) == "wise"

    def test_unknown_name_is_its_own_key(self):
        aliases = AliasTable.from_dict({"transferwise": "wise"})
        assert normalize_provider_key("Remitly", aliases) == "remitly"


class TestStripProviderName:
    def test_returns_empty_instead_of_raising(self):
        assert strip_provider_name("---") == ""
        assert strip_provider_name(None) == ""


class TestDisplayNameFromSlug:
    def test_title_cases_words(self):
        assert display_name_from_slug("western-union") == "Western Union"
        assert display_name_from_slug("commonwealth-bank-of-australia") == "Commonwealth Bank Of Australia"

    def test_single_word(self):
        assert display_name_from_slug("wise") == "Wise"

    def test_ignores_repeated_hyphens(self):
        assert display_name_from_slug("-anz--nz-") == "Anz Nz"
