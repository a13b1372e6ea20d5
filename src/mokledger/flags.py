"""Runtime switches for economy rules that are still a product decision."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterator, Mapping, Optional

REWARD_REPEAT_COMPLETION = "reward_repeat_completion"


@dataclass(frozen=True, slots=True)
class FeatureFlag:
    key: str
    enabled: bool
    description: str = ""


# Flags every registry starts with, and their shipped defaults.
KNOWN_FLAGS: Mapping[str, FeatureFlag] = {
    REWARD_REPEAT_COMPLETION: FeatureFlag(
        REWARD_REPEAT_COMPLETION,
        True,
        "Award XP and MokTokens again when a completed module is reviewed.",
    ),
}


class FeatureFlagRegistry:
    """Known economy flags plus any ad-hoc overrides for one process."""

    def __init__(self, overrides: Optional[Mapping[str, bool]] = None) -> None:
        self._flags: Dict[str, FeatureFlag] = dict(KNOWN_FLAGS)
        for key, enabled in (overrides or {}).items():
            self.toggle(key, bool(enabled))

    def __iter__(self) -> Iterator[FeatureFlag]:
        return iter(self.list_flags())

    def toggle(self, key: str, enabled: bool) -> FeatureFlag:
        current = self._flags.get(key)
        flag = replace(current, enabled=enabled) if current else FeatureFlag(key, enabled)
        self._flags[key] = flag
        return flag

    def enable(self, key: str) -> FeatureFlag:
        return self.toggle(key, True)

    def disable(self, key: str) -> FeatureFlag:
        return self.toggle(key, False)

    def is_enabled(self, key: str, *, default: bool = False) -> bool:
        flag = self._flags.get(key)
        return default if flag is None else flag.enabled

    def list_flags(self) -> tuple[FeatureFlag, ...]:
        return tuple(self._flags[key] for key in sorted(self._flags))

    def as_dict(self) -> Dict[str, bool]:
        return {flag.key: flag.enabled for flag in self.list_flags()}


def default_flags(*, reward_repeat_completion: bool = True) -> FeatureFlagRegistry:
    return FeatureFlagRegistry({REWARD_REPEAT_COMPLETION: reward_repeat_completion})


__all__ = ["FeatureFlag", "FeatureFlagRegistry", "KNOWN_FLAGS", "REWARD_REPEAT_COMPLETION", "default_flags"]
