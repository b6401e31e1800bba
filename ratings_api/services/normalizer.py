"""Provider name normalization.

Maps user input, URL slugs and legacy names onto one canonical key:
"Western Union", "western-union", "provider-westernunion" -> "westernunion".
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from ratings_api.services.errors import InvalidProviderKey

if TYPE_CHECKING:
    from ratings_api.services.rating_tables import AliasTable

PROVIDER_PREFIX = "provider-"
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def strip_provider_name(raw: str) -> str:
    """Lowercase, drop the `provider-` prefix and every non-alphanumeric character.

    Returns an empty string when nothing is left; callers decide whether that is an error.
    """
    name = (raw or "").strip().lower()
    if name.startswith(PROVIDER_PREFIX):
        name = name[len(PROVIDER_PREFIX):]
    return _NON_ALNUM_RE.sub("", name).strip()


def normalize_provider_key(raw: str, aliases: AliasTable | None = None) -> str:
    """Get canonical provider key.

    Args:
        raw: Provider name in any form.
        aliases: Alias table applied after stripping.

    Returns:
        Canonical provider key.

    Raises:
        InvalidProviderKey: If the name is empty after stripping.
    """
    key = strip_provider_name(raw)
    if not key:
        raise InvalidProviderKey(raw)
    if aliases is None:
        return key
    return aliases.resolve(key)


def display_name_from_slug(slug: str) -> str:
    """Format a provider slug as a human search phrase ("western-union" -> "Western Union")."""
    parts = [p for p in slug.strip().split("-") if p]
    return " ".join(p[:1].upper() + p[1:] for p in parts)
