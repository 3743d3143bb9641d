from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping


def _flag(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"user_cf.{key} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class CFConfig:
    """Algorithm constants for user-based CF prediction."""

    min_stars: int = 1
    max_stars: int = 5
    # Fewer co-rated items than this and Pearson is not evaluated.
    min_common: int = 2
    # At most this many neighbors bound the prediction.
    max_sample: int = 8
    # Weaker similarities are treated as noise.
    min_pcc_threshold: float = 0.2
    reject_negative_pcc: bool = True
    cache_histories: bool = False
    workers: int = 1

    def __post_init__(self) -> None:
        if int(self.min_stars) >= int(self.max_stars):
            raise ValueError(f"min_stars must be < max_stars, got {self.min_stars}..{self.max_stars}")
        if int(self.min_common) < 2:
            raise ValueError(f"min_common must be >= 2, got {self.min_common}")
        if int(self.max_sample) < 1:
            raise ValueError(f"max_sample must be >= 1, got {self.max_sample}")
        if not -1.0 <= float(self.min_pcc_threshold) <= 1.0:
            raise ValueError(f"min_pcc_threshold must be within [-1, 1], got {self.min_pcc_threshold}")
        if int(self.workers) < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "CFConfig":
        """Build from the `user_cf` section of config.yaml; unknown keys are rejected."""
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValueError(f"user_cf config must be a mapping, got {type(raw)}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ValueError(f"Unknown user_cf config keys: {unknown}")

        defaults = cls()
        return cls(
            min_stars=int(raw.get("min_stars", defaults.min_stars)),
            max_stars=int(raw.get("max_stars", defaults.max_stars)),
            min_common=int(raw.get("min_common", defaults.min_common)),
            max_sample=int(raw.get("max_sample", defaults.max_sample)),
            min_pcc_threshold=float(raw.get("min_pcc_threshold", defaults.min_pcc_threshold)),
            reject_negative_pcc=_flag(raw, "reject_negative_pcc", defaults.reject_negative_pcc),
            cache_histories=_flag(raw, "cache_histories", defaults.cache_histories),
            workers=int(raw.get("workers", defaults.workers)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
