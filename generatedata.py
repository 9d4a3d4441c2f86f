"""Synthetic recovery check-ins for demo mode and local testing."""
import os
import random
from datetime import date, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd

from recovery import ACTIVITY_FIELDS, RecoveryEntry, entries_frame

STATUSES = ["worse", "same", "better"]


def generate_entries(days: int = 45, end: Optional[date] = None, seed: Optional[int] = None, gaps: int = 3) -> List[RecoveryEntry]:
    """
    Roughly improving daily entries ending at `end`, with a few missed days.
    The last week is always complete so the demo shows a live streak.
    """
    rng = np.random.default_rng(seed)
    rnd = random.Random(seed)
    end = end or date.today()
    start = end - timedelta(days=days - 1)

    # Pick some gap days outside the final week
    candidates = list(range(0, max(0, days - 7)))
    gap_days = set(rnd.sample(candidates, min(gaps, len(candidates))))

    entries: List[RecoveryEntry] = []
    prev_mood = None
    for i in range(days):
        if i in gap_days:
            continue
        # Slow upward trend from ~4 to ~7 with day-to-day noise
        trend = 4.0 + 3.0 * (i / max(1, days - 1))
        mood = int(np.clip(round(trend + rng.normal(0, 1.2)), 1, 10))
        energy = int(np.clip(round(trend + rng.normal(0, 1.5)), 1, 10))
        sleep = int(np.clip(round(trend + rng.normal(0.5, 1.0)), 1, 10))
        flags = {name: bool(rng.random() < 0.3 + 0.4 * (i / days)) for name in ACTIVITY_FIELDS}

        if prev_mood is None or mood == prev_mood:
            status = "same"
        else:
            status = STATUSES[2] if mood > prev_mood else STATUSES[0]
        prev_mood = mood

        entries.append(
            RecoveryEntry(
                entry_date=start + timedelta(days=i),
                recovery_status=status,
                mood_score=mood,
                energy_level=energy,
                sleep_quality=sleep,
                **flags,
            )
        )
    return entries


def main():
    df: pd.DataFrame = entries_frame(generate_entries(days=60))
    csv_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "demo_recovery_entries.csv")
    df.to_csv(csv_path, index=False)
    print(f"Wrote {len(df)} entries to {csv_path}")


if __name__ == "__main__":
    main()
