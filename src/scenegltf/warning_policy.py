"""Coded export warnings and the policy that suppresses or promotes them."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

from scenegltf.errors import ValidationError

WARNING_CODES: dict[str, str] = {
    "W01": "joint path referenced by skin weights has no matching node",
    "W02": "vertex has more than 4 joint influences; lightest ones dropped",
    "W03": "mesh compression failed; mesh skipped or left uncompressed",
    "W04": "material texture slot does not resolve to an exported image",
    "W05": "several skin-weight blocks merged into a single skin",
}

KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)


class SceneGltfWarning(UserWarning):
    """Export warning tagged with a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code handling: drop (``suppress``) or raise (``warn_as_error``)."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    @classmethod
    def from_code_lists(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy:
        """Build a policy from comma-separated code strings."""
        return cls(
            warn_as_error=parse_code_list(warn_as_error) if warn_as_error else frozenset(),
            suppress=parse_code_list(suppress) if suppress else frozenset(),
        )


def emit_warning(code: str, message: str, *, policy: WarningPolicy | None = None) -> None:
    """Issue a coded warning through ``warnings.warn`` unless the policy says otherwise.

    Suppressed codes are dropped; codes listed in ``warn_as_error`` raise
    ``ValidationError`` instead.
    """
    if policy is not None:
        if code in policy.suppress:
            return
        if code in policy.warn_as_error:
            raise ValidationError(f"[{code}] {message}")

    warnings.warn(SceneGltfWarning(code, message), stacklevel=2)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse ``"W01, W03"`` style input. Unknown codes raise ``ValueError``."""
    codes: set[str] = set()
    for token in raw.split(","):
        token = token.strip().upper()
        if not token:
            continue
        if token not in KNOWN_CODES:
            raise ValueError(f"Unknown warning code: {token!r} (known: {sorted(KNOWN_CODES)})")
        codes.add(token)
    return frozenset(codes)
