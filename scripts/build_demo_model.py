#!/usr/bin/env python3
"""Fit a small logistic regression on sample leads and save it as a joblib artifact."""

from __future__ import annotations

import argparse
from pathlib import Path

import joblib
import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression

from leadscore.data import make_sample_leads
from leadscore.features import FEATURE_NAMES, build_feature_vector


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a demo lead conversion model")
    parser.add_argument("--output", type=Path, default=Path("artifacts/lead_model.joblib"))
    parser.add_argument("--leads", type=int, default=500)
    parser.add_argument("--version", type=str, default="1")
    parser.add_argument("--seed", type=int, default=7)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    leads = make_sample_leads(args.leads, start_id=1, seed=args.seed)
    frame = pd.DataFrame([build_feature_vector(lead) for lead in leads], columns=FEATURE_NAMES)

    # Synthetic labels: engaged, recently active leads convert
    rng = np.random.default_rng(args.seed)
    signal = (
        2.0 * frame["engagement_score"]
        + 1.5 * frame["behavioral_score"]
        + 0.3 * frame["conversion_events"]
        - 0.03 * frame["days_since_last_activity"]
    )
    labels = (signal + rng.normal(0, 0.5, len(frame)) > signal.median()).astype(int)

    model = LogisticRegression(max_iter=1000)
    model.fit(frame, labels)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump({"model": model, "feature_names": FEATURE_NAMES, "version": args.version}, args.output)
    print(f"Saved model artifact to {args.output}")


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
