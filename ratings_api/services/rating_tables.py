"""Alias and fallback tables for provider ratings.

Tables are versioned configuration, loaded once at startup and passed into
resolvers and fetchers. The built-in defaults below can be replaced per section
by a JSON file (RATING_TABLES_FILE):

    {
      "version": "2025-03-01",
      "aliases": {"transferwise": "wise"},
      "fallbacks": {"trustpilot": {"wise": 4.3}, "google": {"ofx": 4.0}},
      "trustpilot_domains": {"wise": "wise.com"},
      "refresh_providers": ["wise", "western-union"]
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from ratings_api.services.normalizer import normalize_provider_key, strip_provider_name
from ratings_api.services.records import RatingPlatform, is_valid_rating

logger = logging.getLogger("uvicorn.error")

DEFAULT_TABLES_VERSION = "2025-03-01"

# Raw alias -> canonical key. Separators and case are irrelevant: keys are normalized on load.
DEFAULT_ALIASES: dict[str, str] = {
    "transferwise": "wise",
    "skrill money transfer": "skrill",
    "xe money": "xe",
    "regency": "regencyfx",
    "panda": "pandaremit",
    "panda remit": "pandaremit",
    "tor": "torfx",
    "starling bank": "starling",
    "boi": "bankofireland",
    "ptsb": "permanenttsb",
    "ulster": "ulsterbank",
}

DEFAULT_FALLBACKS: dict[RatingPlatform, dict[str, float]] = {
    RatingPlatform.TRUSTPILOT: {
        "regencyfx": 4.9,
        "torfx": 4.4,
        "pandaremit": 4.1,
        "xe": 4.2,
        "profee": 4.4,
    },
    # Providers without a usable Google Places listing get a neutral rating.
    RatingPlatform.GOOGLE: {
        name: 4.0
        for name in (
            "ofx", "barclays", "skrill", "lloyds", "halifax", "nationwide",
            "paypal", "western-union", "monese", "moneygram", "natwest", "rbs",
        )
    },
}

# Canonical key -> Trustpilot review page domain (uk.trustpilot.com/review/<domain>).
DEFAULT_TRUSTPILOT_DOMAINS: dict[str, str] = {
    "torfx": "www.torfx.com",
    "regencyfx": "regencyfx.com",
    "pandaremit": "pandaremit.com",
    "wise": "wise.com",
    "westernunion": "westernunion.com",
    "moneygram": "moneygram.com",
    "worldremit": "worldremit.com",
    "remitly": "remitly.com",
    "xe": "xe.com",
    "currencyfair": "currencyfair.com",
    "paypal": "paypal.com",
    "skrill": "transfers.skrill.com",
    "revolut": "revolut.com",
    "monzo": "monzo.com",
    "starling": "starlingbank.com",
    "hsbc": "hsbc.co.uk",
    "barclays": "barclays.co.uk",
    "lloyds": "lloydsbank.com",
    "halifax": "halifax.co.uk",
    "natwest": "natwest.com",
    "rbs": "rbs.co.uk",
    "santander": "santander.co.uk",
    "nationwide": "nationwide.co.uk",
    "ofx": "ofx.com",
    "profee": "profee.com",
    "chase": "chase.co.uk",
    "firstdirect": "firstdirect.com",
    "metrobank": "metrobank.co.uk",
    "virginmoney": "virginmoney.co.uk",
    "tsb": "tsb.co.uk",
    "coopbank": "co-operativebank.co.uk",
    "yorkshirebank": "yorkshirebank.co.uk",
    "clydesdalebank": "clydesdalebank.co.uk",
    "bankofscotland": "bankofscotland.co.uk",
    "ulsterbank": "ulsterbank.co.uk",
    "bankofireland": "bankofireland.co.uk",
    "aib": "aib.ie",
    "permanenttsb": "permanenttsb.ie",
    "kbc": "kbc.ie",
}

# Provider slugs refreshed by scripts/refresh_ratings.py.
DEFAULT_REFRESH_PROVIDERS: tuple[str, ...] = (
    "abn-amro-bank", "anz", "anz-nz", "auckland-savings-bank-nz", "azimo",
    "bank-of-america", "bank-of-new-zealand-nz", "barclays", "bbva", "bea",
    "bendigo-bank", "bnc", "bnp", "ccb-hk", "chase", "citibank-singapore",
    "commerzbank", "commonwealth-bank-of-australia", "currencyfair",
    "deutsche-bank", "halifax", "hang-seng", "hsbc-hk", "ing-nl", "instarem",
    "kiwibank", "knab", "la-banque-postale", "lacaixa", "lloyds", "migros",
    "monese", "moneygram", "national-australia-bank", "nationwide", "natwest",
    "ocbc", "ocbc-whb", "ofx", "paypal", "postfinance", "qnb-finansbank",
    "rbc", "rbs", "remitly", "revolut", "ria", "sabadell", "scotiabank",
    "skrill", "starling-bank", "swedbank-ab", "td-bank", "transfergo",
    "unicredit", "western-union", "westpac-nz", "wise", "worldremit",
    "worldfirst", "xe", "xoom", "zkb", "torfx", "regency-fx", "pandaremit",
    "profee",
)


@dataclass(frozen=True)
class AliasTable:
    """Normalized alias -> canonical provider key.

    Canonical keys always map to themselves; unknown keys resolve to themselves.
    """

    mapping: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, aliases: Mapping[str, str]) -> AliasTable:
        """Build a table from raw alias -> raw target names.

        Raises:
            ValueError: On empty names, an alias with two targets, or alias chains.
        """
        resolved: dict[str, str] = {}
        for alias, target in aliases.items():
            alias_key = strip_provider_name(alias)
            target_key = strip_provider_name(target)
            if not alias_key or not target_key:
                raise ValueError(f"Empty alias entry: {alias!r} -> {target!r}")
            existing = resolved.get(alias_key)
            if existing is not None and existing != target_key:
                raise ValueError(
                    f"Alias {alias_key!r} maps to both {existing!r} and {target_key!r}"
                )
            resolved[alias_key] = target_key

        for target in set(resolved.values()):
            chained = resolved.get(target, target)
            if chained != target:
                raise ValueError(f"Alias target {target!r} is itself an alias of {chained!r}")
            resolved[target] = target

        return cls(mapping=MappingProxyType(resolved))

    def resolve(self, key: str) -> str:
        return self.mapping.get(key, key)

    @property
    def canonical_keys(self) -> frozenset[str]:
        return frozenset(self.mapping.values())

    def __len__(self) -> int:
        return len(self.mapping)


@dataclass(frozen=True)
class FallbackTable:
    """Canonical provider key -> default rating, served only when the store has no record."""

    ratings: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, ratings: Mapping[str, Any], aliases: AliasTable | None = None) -> FallbackTable:
        resolved: dict[str, float] = {}
        for name, value in ratings.items():
            key = normalize_provider_key(name, aliases)
            if not is_valid_rating(value):
                raise ValueError(f"Fallback rating for {key!r} out of range: {value!r}")
            resolved[key] = float(value)
        return cls(ratings=MappingProxyType(resolved))

    def get(self, key: str) -> float | None:
        return self.ratings.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.ratings

    def __len__(self) -> int:
        return len(self.ratings)


@dataclass(frozen=True)
class RatingTables:
    """All static rating configuration, versioned as one unit."""

    version: str
    aliases: AliasTable
    fallbacks: Mapping[RatingPlatform, FallbackTable]
    trustpilot_domains: Mapping[str, str]
    refresh_providers: tuple[str, ...]

    def fallbacks_for(self, platform: RatingPlatform) -> FallbackTable:
        return self.fallbacks.get(platform) or FallbackTable()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RatingTables:
        """Build tables from a JSON-like dict; missing sections use the built-in defaults."""
        aliases = AliasTable.from_dict(data.get("aliases", DEFAULT_ALIASES))

        raw_fallbacks = data.get("fallbacks")
        if raw_fallbacks is None:
            platform_fallbacks = dict(DEFAULT_FALLBACKS)
        else:
            platform_fallbacks = {}
            for platform_name, ratings in raw_fallbacks.items():
                try:
                    platform = RatingPlatform(platform_name)
                except ValueError:
                    raise ValueError(f"Unknown rating platform in fallbacks: {platform_name!r}") from None
                platform_fallbacks[platform] = ratings

        fallbacks = {
            platform: FallbackTable.from_dict(ratings, aliases)
            for platform, ratings in platform_fallbacks.items()
        }

        domains = {
            normalize_provider_key(name, aliases): str(domain).strip()
            for name, domain in data.get("trustpilot_domains", DEFAULT_TRUSTPILOT_DOMAINS).items()
        }

        refresh = _dedupe_by_key(data.get("refresh_providers", DEFAULT_REFRESH_PROVIDERS), aliases)

        return cls(
            version=str(data.get("version", DEFAULT_TABLES_VERSION)),
            aliases=aliases,
            fallbacks=MappingProxyType(fallbacks),
            trustpilot_domains=MappingProxyType(domains),
            refresh_providers=refresh,
        )


def _dedupe_by_key(slugs: Any, aliases: AliasTable) -> tuple[str, ...]:
    """Keep the first slug per canonical key ("wise" and "transferwise" refresh once)."""
    seen: set[str] = set()
    out: list[str] = []
    for slug in slugs:
        key = normalize_provider_key(str(slug), aliases)
        if key in seen:
            continue
        seen.add(key)
        out.append(str(slug))
    return tuple(out)


def default_rating_tables() -> RatingTables:
    return RatingTables.from_dict({})


def load_rating_tables(path: str | None = None) -> RatingTables:
    """Load rating tables from a JSON file, or the built-in defaults when path is empty.

    Raises:
        ValueError: If the file is not a JSON object or a table is inconsistent.
        OSError: If the file cannot be read.
    """
    if not path:
        tables = default_rating_tables()
    else:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Rating tables file must contain a JSON object: {path}")
        tables = RatingTables.from_dict(payload)

    fallback_sizes = {p.value: len(t) for p, t in tables.fallbacks.items()}
    logger.info(
        f"Rating tables loaded: version={tables.version}, aliases={len(tables.aliases)}, "
        f"fallbacks={fallback_sizes}"
    )
    return tables
