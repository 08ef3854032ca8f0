"""Template expansion for calculated columns and regions.

Nothing here evaluates a formula: every function returns formula text for
the host to evaluate.

A template refers to logical names with ``$identifier`` placeholders::

    IF(ISBLANK($score), "", $score/AVERAGE($score$5:$score$1000))

``substitute`` turns logical names into locators. With ``preserve_marker``
the result keeps the ``$`` (``$E/$F``) so that ``expand_per_row`` can later
qualify every bare ``$LETTERS`` reference with a row number (``E5/F5``).
A ``$`` followed by a digit is an absolute-row marker and is left alone, so
``$E$5`` survives both steps unchanged.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
import re

from .errors import ConfigError

_PLACEHOLDER_PATTERN = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
_ROW_REFERENCE_PATTERN = re.compile(r"\$([A-Z]{1,3})(?![A-Za-z0-9_$(])")


def placeholders(template: str) -> list[str]:
    """Return placeholder identifiers in order of first appearance."""
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER_PATTERN.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def substitute(
    template: str,
    mapping: Mapping[str, str],
    *,
    preserve_marker: bool = False,
    strict: bool = False,
) -> str:
    """Replace every ``$identifier`` with its mapped locator.

    Args:
        template: Template expression.
        mapping: Logical name to locator map (exact match first, then
            case-insensitive).
        preserve_marker: Keep the ``$`` prefix on substituted locators.
        strict: Raise on identifiers missing from ``mapping`` instead of
            substituting an empty token.

    Raises:
        ConfigError: If ``strict`` and a placeholder has no mapping entry.
    """
    folded = {key.casefold(): value for key, value in mapping.items()}
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        locator = mapping.get(name)
        if locator is None:
            locator = folded.get(name.casefold())
        if locator is None:
            missing.append(name)
            return ""
        return f"${locator}" if preserve_marker else locator

    result = _PLACEHOLDER_PATTERN.sub(_replace, template)
    if missing and strict:
        raise ConfigError(
            f"Unresolved placeholders in template: {template}",
            [f"${name} has no matching column or region" for name in missing],
        )
    return result


def as_formula(text: str) -> str:
    """Return text with exactly one leading ``=``."""
    stripped = text.strip()
    if stripped.startswith("="):
        return stripped
    return f"={stripped}"


def qualify_row(template: str, row: int) -> str:
    """Qualify every bare ``$LETTERS`` reference with ``row``."""
    return as_formula(_ROW_REFERENCE_PATTERN.sub(rf"\g<1>{row}", template))


def expand_per_row(template: str, first_row: int, last_row: int) -> Iterator[str]:
    """Yield one concrete formula per row, ascending from first_row to last_row.

    The iterator is single-use; an inverted range yields nothing.
    """
    for row in range(first_row, last_row + 1):
        yield qualify_row(template, row)


def build_call(function: str, locators: Sequence[str]) -> str:
    """Build a call expression such as ``=TOTAL(B2,C2)``."""
    return f"={function}({','.join(locators)})"
