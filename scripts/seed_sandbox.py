#!/usr/bin/env python3
"""
Engagement Sandbox Seeder

Generates a 30-day synthetic offer event log (offers, customers, received /
viewed / completed offer events and transactions) and writes it to DuckDB.
Payloads deliberately mix every textual shape the payload extractor
understands, plus a few it does not, so the dashboard exercises its parsing
and fallback paths.

Usage:
    python scripts/seed_sandbox.py                       # Default database, 500 customers
    python scripts/seed_sandbox.py --customers 2000 --seed 7
    python scripts/seed_sandbox.py --db-path ./data/demo.duckdb --keep
"""

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Optional

import structlog

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from engagement.config import get_settings
from engagement.models.enums import EventKind, OfferType
from engagement.models.events import OBSERVATION_HOURS, Customer, Event, Offer
from engagement.storage.duckdb_storage import DuckDBEventStore

logger = structlog.get_logger()

RECEIVED_FORMATS = ["{{'offer id': '{id}'}}", '{{"offer id": "{id}"}}', "'offer id': '{id}'"]
COMPLETED_FORMATS = [
    "{{'offer_id': '{id}', 'reward': {reward}}}",
    '{{"offer_id": "{id}", "reward": {reward}}}',
    "offer_id={id}",
]
AMOUNT_FORMATS = [
    "{{'amount': {amount}}}",
    '{{"amount": {amount}}}',
    "amount': {amount}",
    "amount: {amount}",
    "amount={amount}",
]
MALFORMED_AMOUNTS = ["amount: n/a", "{'amount': None}", ""]


class SeedDataGenerator:
    """
    Generates a reproducible engagement dataset.

    Offer completion odds rise with income and transaction sizes rise with
    income, so the demographic charts have a visible gradient.
    """

    OFFER_MIX = [
        (OfferType.BOGO, 4, 5),
        (OfferType.DISCOUNT, 4, 3),
        (OfferType.INFORMATIONAL, 2, 0),
    ]
    CHANNEL_SETS = [
        "['web', 'email', 'mobile', 'social']",
        "['web', 'email', 'mobile']",
        "['email', 'mobile', 'social']",
        "['web', 'email']",
    ]
    GENDERS = ["F", "M", "O", ""]

    def __init__(self, seed: int = 42, customers: int = 500):
        self.rng = random.Random(seed)
        self.customer_count = customers
        self.offers: list[Offer] = []
        self.rewards: dict[str, int] = {}
        self.customers: list[Customer] = []
        self.events: list[Event] = []

    def _hex_id(self) -> str:
        return f"{self.rng.getrandbits(128):032x}"

    def generate_offers(self) -> list[Offer]:
        for offer_type, count, reward in self.OFFER_MIX:
            for _ in range(count):
                offer = Offer(
                    offer_id=self._hex_id(),
                    offer_type=offer_type,
                    channels=self.rng.choice(self.CHANNEL_SETS),
                )
                self.offers.append(offer)
                self.rewards[offer.offer_id] = reward
        logger.info("offers_generated", count=len(self.offers))
        return self.offers

    def generate_customers(self) -> list[Customer]:
        for _ in range(self.customer_count):
            roll = self.rng.random()
            if roll < 0.1:
                income: Optional[str] = None
            elif roll < 0.13:
                income = ""
            else:
                income = str(self.rng.randrange(30000, 120001, 1000))
            self.customers.append(
                Customer(
                    customer_id=self._hex_id(),
                    income=income,
                    gender=self.rng.choice(self.GENDERS),
                )
            )
        logger.info("customers_generated", count=len(self.customers))
        return self.customers

    def _completion_odds(self, customer: Customer) -> float:
        if not customer.income:
            return 0.35
        return min(0.9, 0.3 + int(customer.income) / 200000)

    def _amount_payload(self, customer: Customer) -> str:
        if self.rng.random() < 0.02:
            return self.rng.choice(MALFORMED_AMOUNTS)
        base = int(customer.income) / 4000 if customer.income else 12.0
        amount = round(self.rng.uniform(0.5, 2.0) * base, 2)
        return self.rng.choice(AMOUNT_FORMATS).format(amount=amount)

    def generate_events(self) -> list[Event]:
        last_hour = OBSERVATION_HOURS - 1
        for customer in self.customers:
            odds = self._completion_odds(customer)

            for _ in range(self.rng.randint(2, 6)):
                offer = self.rng.choice(self.offers)
                received_at = self.rng.randrange(0, 600, 6)
                self.events.append(
                    Event(
                        customer_id=customer.customer_id,
                        event=EventKind.OFFER_RECEIVED,
                        value=self.rng.choice(RECEIVED_FORMATS).format(id=offer.offer_id),
                        time=received_at,
                    )
                )
                if self.rng.random() < 0.7:
                    self.events.append(
                        Event(
                            customer_id=customer.customer_id,
                            event=EventKind.OFFER_VIEWED,
                            value=f"{{'offer id': '{offer.offer_id}'}}",
                            time=min(last_hour, received_at + self.rng.randint(0, 48)),
                        )
                    )
                if offer.offer_type != OfferType.INFORMATIONAL and self.rng.random() < odds:
                    self.events.append(
                        Event(
                            customer_id=customer.customer_id,
                            event=EventKind.OFFER_COMPLETED,
                            value=self.rng.choice(COMPLETED_FORMATS).format(
                                id=offer.offer_id, reward=self.rewards[offer.offer_id]
                            ),
                            time=min(last_hour, received_at + self.rng.randint(6, 168)),
                        )
                    )

            for _ in range(self.rng.randint(3, 15)):
                self.events.append(
                    Event(
                        customer_id=customer.customer_id,
                        event=EventKind.TRANSACTION,
                        value=self._amount_payload(customer),
                        time=self.rng.randint(0, last_hour),
                    )
                )

        self.events.sort(key=lambda e: e.time)
        logger.info("events_generated", count=len(self.events))
        return self.events

    def generate(self) -> None:
        self.generate_offers()
        self.generate_customers()
        self.generate_events()


def seed(store: DuckDBEventStore, generator: SeedDataGenerator, keep: bool = False) -> dict:
    """Write the generated dataset. Returns row counts per table."""
    if not keep:
        store.clear_for_testing()
    return {
        "offers": store.write_offers(generator.offers),
        "customers": store.write_customers(generator.customers),
        "events": store.write_events(generator.events),
    }


def main():
    """Main entry point for sandbox seeding script."""
    parser = argparse.ArgumentParser(
        description="Seed DuckDB with a synthetic 30-day engagement event log"
    )
    parser.add_argument(
        "--customers",
        type=int,
        default=500,
        help="Number of customers to generate (default: 500)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="DuckDB file to write (default: DB_PATH setting)",
    )
    parser.add_argument(
        "--keep",
        action="store_true",
        default=False,
        help="Append to existing rows instead of clearing the tables first",
    )

    args = parser.parse_args()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    settings = get_settings()
    db_path = args.db_path or settings.db_path

    logger.info("sandbox_seeder_started", customers=args.customers, seed=args.seed, db_path=db_path)

    generator = SeedDataGenerator(seed=args.seed, customers=args.customers)
    generator.generate()

    store = DuckDBEventStore(db_path=db_path, threads=settings.db_threads)
    try:
        counts = seed(store, generator, keep=args.keep)
    finally:
        store.close()

    logger.info("sandbox_seeder_completed", **counts)


if __name__ == "__main__":
    main()
