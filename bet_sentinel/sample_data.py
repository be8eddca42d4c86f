"""
Sample data generator for testing and demonstration.

This module generates realistic bet events for the Bet Sentinel store,
mixing casual bettors with a few automated-looking actors, so the
detection pipeline can be demonstrated without live ingestion.
"""

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from .database import Database, db
from .models import BetEvent

GAMES = [
    ("g_roulette", "Roulette"),
    ("g_blackjack", "Blackjack"),
    ("g_baccarat", "Baccarat"),
    ("g_slots_gold", "Gold Rush Slots"),
    ("g_poker", "Texas Hold'em"),
    ("g_dice", "Dice"),
    ("g_crash", "Crash"),
    ("g_football", "Football Match Winner"),
    ("g_tennis", "Tennis Set Betting"),
    ("g_horse", "Horse Racing"),
]


def generate_actor_id(rng: random.Random) -> str:
    """Generate a random user identifier."""
    return "user_" + "".join(rng.choices(string.ascii_lowercase + string.digits, k=10))


def generate_sample_events(
    now: Optional[datetime] = None,
    num_actors: int = 50,
    num_bots: int = 3,
    bets_per_actor: tuple[int, int] = (1, 30),
    seed: Optional[int] = None
) -> list[BetEvent]:
    """
    Generate sample bet events.

    Casual actors bet irregular amounts on many games across the last
    two weeks. Bot-like actors place rapid round-amount bets on a single
    game inside the last day, with part of their bets pre-flagged.

    Args:
        now: Reference time (current UTC time if not provided).
        num_actors: Number of casual actors.
        num_bots: Number of bot-like actors.
        bets_per_actor: Min and max bets per casual actor.
        seed: Random seed for reproducible output.

    Returns:
        List of BetEvent.
    """
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    events = []

    for _ in range(num_actors):
        actor_id = generate_actor_id(rng)
        for _ in range(rng.randint(*bets_per_actor)):
            game_id, game_name = rng.choice(GAMES)
            events.append(BetEvent(
                actor_id=actor_id,
                amount=round(rng.uniform(1, 500), 2),
                game_id=game_id,
                game_name=game_name,
                timestamp=now - timedelta(
                    days=rng.randint(0, 13),
                    hours=rng.randint(0, 23),
                    minutes=rng.randint(0, 59)
                ),
                flagged=rng.random() < 0.02,
            ))

    for _ in range(num_bots):
        actor_id = "bot_" + generate_actor_id(rng)
        game_id, game_name = rng.choice(GAMES)
        stake = rng.choice([10, 20, 50, 100])
        span_minutes = rng.randint(60, 600)
        for _ in range(rng.randint(60, 150)):
            events.append(BetEvent(
                actor_id=actor_id,
                amount=float(stake),
                game_id=game_id,
                game_name=game_name,
                timestamp=now - timedelta(minutes=rng.uniform(0, span_minutes)),
                flagged=rng.random() < 0.3,
            ))

    return events


def generate_sample_data(
    database: Optional[Database] = None,
    num_actors: int = 50,
    num_bots: int = 3,
    seed: Optional[int] = None
) -> dict:
    """
    Generate sample bets and store them.

    Args:
        database: Database instance (uses global if not provided).
        num_actors: Number of casual actors.
        num_bots: Number of bot-like actors.
        seed: Random seed for reproducible output.

    Returns:
        Dictionary with generation statistics.
    """
    db_instance = database or db

    events = generate_sample_events(num_actors=num_actors, num_bots=num_bots, seed=seed)
    stored = db_instance.insert_bets(events)

    stats = {
        "actors_created": len({e.actor_id for e in events}),
        "bets_created": stored,
    }

    print("Generated sample data:")
    print(f"  - {stats['actors_created']} actors")
    print(f"  - {stats['bets_created']} bets")

    return stats


def clear_sample_data(database: Optional[Database] = None) -> None:
    """
    Clear all data from the database.

    Args:
        database: Database instance (uses global if not provided).
    """
    db_instance = database or db

    with db_instance.get_connection() as conn:
        conn.execute("DELETE FROM bets")

    print("All sample data cleared.")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate sample data for Bet Sentinel")
    parser.add_argument("--actors", type=int, default=50, help="Number of casual actors")
    parser.add_argument("--bots", type=int, default=3, help="Number of bot-like actors")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")

    args = parser.parse_args()

    if args.clear:
        clear_sample_data()

    generate_sample_data(num_actors=args.actors, num_bots=args.bots, seed=args.seed)
