#!/usr/bin/env python3
"""
Engagement Dataset Loader

Loads the three CSV exports of the offer campaign dataset into DuckDB:

- transcript.csv: person, event, value, time
- portfolio.csv: id, offer_type, channels (reward, difficulty, duration ignored)
- profile.csv: id, gender, income (age, became_member_on ignored)

Column names are normalized to the event store schema. Rows that fail model
validation (unknown event kind or offer type, negative time) are skipped and
counted.

Usage:
    python scripts/load_dataset.py --data-dir ./data/raw
    python scripts/load_dataset.py --data-dir ./data/raw --db-path ./data/engagement.duckdb --append

Requirements:
    pandas>=2.0.0
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

import pandas as pd
import structlog
from pydantic import BaseModel, ValidationError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from engagement.config import get_settings
from engagement.models.events import Customer, Event, Offer
from engagement.storage.duckdb_storage import DuckDBEventStore
from engagement.utils.logging import configure_logging

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

COLUMN_ALIASES = {
    "transcript": {"person": "customer_id"},
    "portfolio": {"id": "offer_id"},
    "profile": {"id": "customer_id"},
}

REQUIRED_COLUMNS = {
    "transcript": ["customer_id", "event", "value", "time"],
    "portfolio": ["offer_id", "offer_type", "channels"],
    "profile": ["customer_id", "gender", "income"],
}


class DatasetLoader:
    """
    Reads the CSV exports and converts them into event store models.
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Args:
            data_dir: Directory containing the CSV files.
                     Defaults to ../data/raw/
        """
        if data_dir is None:
            project_root = Path(__file__).parent.parent
            data_dir = project_root / "data" / "raw"

        self.data_dir = Path(data_dir)
        self.logger = logger.bind(component="dataset_loader")
        self.skipped: dict[str, int] = {}

    def read_table(self, name: str) -> pd.DataFrame:
        """
        Read one CSV export with normalized column names and nulls as None.

        Raises:
            FileNotFoundError: If the CSV file is missing
            ValueError: If a required column is missing
        """
        path = self.data_dir / f"{name}.csv"
        if not path.exists():
            raise FileNotFoundError(f"Missing dataset file: {path}")

        df = pd.read_csv(path, dtype={"value": str, "channels": str})
        df.columns = [c.strip().lower() for c in df.columns]
        df = df.drop(columns=[c for c in df.columns if c.startswith("unnamed")])
        df = df.rename(columns=COLUMN_ALIASES[name])

        missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
        if missing:
            raise ValueError(f"{path.name} is missing columns: {missing}")

        df = df[REQUIRED_COLUMNS[name]]
        df = df.astype(object).where(df.notna(), None)
        self.logger.info("table_read", table=name, rows=len(df))
        return df

    def _models(self, name: str, df: pd.DataFrame, build: Callable[[dict], M]) -> Iterator[M]:
        skipped = 0
        for record in df.to_dict(orient="records"):
            try:
                yield build(record)
            except ValidationError as e:
                skipped += 1
                self.logger.debug("row_skipped", table=name, error=str(e))
        self.skipped[name] = skipped
        if skipped:
            self.logger.warning("rows_skipped", table=name, count=skipped)

    def offers(self) -> list[Offer]:
        df = self.read_table("portfolio")
        return list(self._models("portfolio", df, lambda r: Offer(**_present(r))))

    def customers(self) -> list[Customer]:
        df = self.read_table("profile")
        return list(self._models("profile", df, lambda r: Customer(**r)))

    def events(self) -> list[Event]:
        df = self.read_table("transcript")
        df["time"] = pd.to_numeric(df["time"], errors="coerce")
        df = df[df["time"].notna()].copy()
        df["time"] = df["time"].astype(int)
        return list(self._models("transcript", df, lambda r: Event(**_present(r))))


def _present(record: dict[str, Any]) -> dict[str, Any]:
    """Drop None values so model defaults apply."""
    return {k: v for k, v in record.items() if v is not None}


def load(loader: DatasetLoader, store: DuckDBEventStore, append: bool = False) -> dict:
    """Load every table. Returns row counts written per table."""
    if not append:
        store.clear_for_testing()
    return {
        "offers": store.write_offers(loader.offers()),
        "customers": store.write_customers(loader.customers()),
        "events": store.write_events(loader.events()),
    }


def main():
    """Main entry point for the dataset loader."""
    parser = argparse.ArgumentParser(description="Load engagement CSV exports into DuckDB")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory with transcript.csv, portfolio.csv and profile.csv (default: data/raw)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="DuckDB file to write (default: DB_PATH setting)",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        default=False,
        help="Keep existing rows instead of clearing the tables first",
    )
    args = parser.parse_args()

    configure_logging()
    settings = get_settings()
    db_path = args.db_path or settings.db_path

    loader = DatasetLoader(data_dir=args.data_dir)
    logger.info("dataset_load_started", data_dir=str(loader.data_dir), db_path=db_path)

    store = DuckDBEventStore(db_path=db_path, threads=settings.db_threads)
    try:
        counts = load(loader, store, append=args.append)
    finally:
        store.close()

    logger.info("dataset_load_completed", skipped=loader.skipped, **counts)


if __name__ == "__main__":
    main()
