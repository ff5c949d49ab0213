"""Command template rendering and placeholder normalization."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PLACEHOLDER = "{ID}"
FALLBACK_PLACEHOLDER_NAME = "ITEM"
_OPEN = "{"
_CLOSE = "}"


@dataclass(frozen=True, slots=True)
class Placeholder:
    """Delimited token replaced by an item identifier."""

    name: str
    token: str


def normalize_placeholder(value: str | None) -> Placeholder:
    """Return the delimited placeholder for a user-supplied token.

    ``ID``, ``{ID`` and ``{ID}`` all resolve to ``{ID}``.  A token that is empty
    once delimiters and whitespace are trimmed falls back to ``{ITEM}``.
    """

    if value is None:
        value = DEFAULT_PLACEHOLDER
    name = value.strip().strip(_OPEN + _CLOSE).strip()
    if not name:
        name = FALLBACK_PLACEHOLDER_NAME
    return Placeholder(name=name, token=f"{_OPEN}{name}{_CLOSE}")


def render_command(template: str, placeholder: Placeholder, item: str) -> str:
    """Replace every literal occurrence of the placeholder token with ``item``.

    Templates without the token are returned unchanged so items can act as
    plain repetition drivers.
    """

    if placeholder.token not in template:
        return template
    return template.replace(placeholder.token, item)
