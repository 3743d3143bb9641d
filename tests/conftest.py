from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure `import reviewcf...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


# (user_id, item_id, stars). For item D, U and V correlate perfectly on {A, B},
# X is anti-correlated with both, W has no variance, and E is rated by two users
# with nothing else in common.
REVIEWS = [
    ("U", "A", 5),
    ("U", "B", 4),
    ("U", "C", 2),
    ("U", "D", 3),
    ("V", "A", 5),
    ("V", "B", 4),
    ("V", "D", 1),
    ("W", "A", 4),
    ("W", "B", 4),
    ("W", "D", 5),
    ("X", "A", 4),
    ("X", "B", 5),
    ("X", "D", 2),
    ("Y", "E", 4),
    ("Z", "E", 2),
]


@pytest.fixture()
def reviews_df() -> pd.DataFrame:
    return pd.DataFrame(REVIEWS, columns=["user_id", "item_id", "stars"])


@pytest.fixture()
def reviews_csv(tmp_path: Path) -> Path:
    """Yelp-style CSV (business_id column) with one record missing its stars."""
    lines = ["user_id,business_id,stars"]
    lines += [f"{u},{i},{s}" for u, i, s in REVIEWS]
    lines.append("M,D,")
    path = tmp_path / "reviews.csv"
    path.write_text("\n".join(lines) + "\n")
    return path
