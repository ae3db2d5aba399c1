"""Lead profile providers backed by in-process storage."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from leadscore.exceptions import LeadNotFound
from leadscore.schemas import LeadProfile

logger = logging.getLogger(__name__)

DATETIME_COLUMNS = ("created_at", "last_activity")


class InMemoryLeadStore:
    """Thread-safe ``LeadDataProvider`` holding profiles in a dict."""

    def __init__(self, profiles: Iterable[LeadProfile] = ()) -> None:
        self._profiles: dict[int, LeadProfile] = {}
        self._lock = threading.Lock()
        for profile in profiles:
            self._profiles[profile.id] = profile

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, *, id_column: str = "id") -> InMemoryLeadStore:
        if id_column not in frame.columns:
            raise KeyError(f"Lead frame is missing the id column '{id_column}'")

        frame = frame.rename(columns={id_column: "id"}).copy()
        for column in DATETIME_COLUMNS:
            if column in frame.columns:
                frame[column] = pd.to_datetime(frame[column], utc=True)

        # NaN -> None so optional fields validate
        frame = frame.astype(object).where(pd.notna(frame), None)
        profiles = []
        for record in frame.to_dict(orient="records"):
            for column in DATETIME_COLUMNS:
                value = record.get(column)
                if isinstance(value, pd.Timestamp):
                    record[column] = value.to_pydatetime()
            profiles.append(LeadProfile.model_validate(record))
        logger.info("Loaded %d lead profiles", len(profiles))
        return cls(profiles)

    @classmethod
    def from_csv(cls, path: Path | str, *, id_column: str = "id") -> InMemoryLeadStore:
        csv_path = Path(path)
        if not csv_path.exists():
            raise FileNotFoundError(f"Leads file not found: {csv_path}")
        return cls.from_frame(pd.read_csv(csv_path), id_column=id_column)

    def add(self, profile: LeadProfile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile

    def remove(self, lead_id: int) -> None:
        with self._lock:
            if self._profiles.pop(lead_id, None) is None:
                raise LeadNotFound(lead_id)

    def fetch_lead_profile(self, lead_id: int) -> LeadProfile:
        with self._lock:
            profile = self._profiles.get(lead_id)
        if profile is None:
            raise LeadNotFound(lead_id)
        return profile

    def ids(self) -> list[int]:
        with self._lock:
            return sorted(self._profiles)

    def profiles(self) -> list[LeadProfile]:
        with self._lock:
            return [self._profiles[lead_id] for lead_id in sorted(self._profiles)]

    def __contains__(self, lead_id: object) -> bool:
        with self._lock:
            return lead_id in self._profiles

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)


__all__ = ["InMemoryLeadStore"]
