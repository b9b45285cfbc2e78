"""Pytest configuration for repository-relative imports."""

import math
import os
import random
import sys

import pandas as pd
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def make_daily_metrics(n_users: int = 20, n_days: int = 28, seed: int = 7) -> pd.DataFrame:
    """日级指标明细：每行一个 user_id × date，两组 cohort，附带用户级的生存字段。"""
    rng = random.Random(seed)
    dates = pd.date_range("2024-03-01", periods=n_days, freq="D")
    rows = []
    for idx in range(n_users):
        cohort = "coaching" if idx % 2 else "control"
        lift = 0.4 if cohort == "coaching" else 0.0
        days_to_lapse = 10 + 3 * idx + (5 if cohort == "coaching" else 0)
        lapsed = int(idx % 4 != 0)
        age = 25 + (idx * 7) % 30
        for day, date in enumerate(dates):
            sleep = 7.0 + lift + rng.gauss(0.0, 0.5)
            steps = 8000.0 + 1500.0 * math.sin(2.0 * math.pi * day / 7.0) + 20.0 * day + rng.gauss(0.0, 300.0)
            mood = 5.0 + 0.0002 * steps + rng.gauss(0.0, 0.8)
            rows.append(
                {
                    "user_id": f"u{idx:03d}",
                    "cohort": cohort,
                    "date": date.strftime("%Y-%m-%d"),
                    "sleep_hours": round(sleep, 2),
                    "sleep_hours_baseline": round(sleep - 0.3 + rng.gauss(0.0, 0.2), 2),
                    "mood_score": round(mood, 2),
                    "steps": round(steps),
                    "exercise_type": rng.choice(["run", "walk", "yoga"]),
                    "mood_level": "high" if mood > 6.6 else "low",
                    "hit_sleep_goal": int(sleep >= 7.5),
                    "days_to_lapse": days_to_lapse,
                    "lapsed": lapsed,
                    "age": age,
                }
            )
    return pd.DataFrame(rows)


@pytest.fixture
def daily_metrics() -> pd.DataFrame:
    return make_daily_metrics()
