"""Deterministic mock records for running the viewer without Firebase."""

from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta, timezone

from logviewer.models.logs import LogRecord
from logviewer.services.path_codec import (
    encode_index_key,
    index_paths_for_record,
    record_path,
)
from logviewer.services.tree_store import InMemoryTreeStore

SERVERS = ["SHOLAHEYSERVER", "TESTINGSERVER", "PRODSERVER"]
PLATFORMS = ["Android", "iOS", "Windows"]
NICKNAMES = ["Player1", "Player2", "Admin", "Moderator", "User123", "GamerPro"]
MESSAGE_TEMPLATES = [
    "User joined the game",
    "User left the game",
    "Error at position: {n}, reading: {m}",
    "IndexOutOfRangeException: index [{m}] out of range, capacity: {n}",
    "NullReferenceException at 0x{h:08X}",
    "Buffer overflow: Size={n} > limit {m}",
    "[warning] Frame time: {f:.2f} ms over budget",
    "Reconnect attempt {m} failed",
    "",
]


def write_record(store: InMemoryTreeStore, record: LogRecord, legacy_key: bool = False) -> None:
    """Store a record and every index entry that points at it."""
    store.set(record_path(record.log_id), record.to_wire())
    key = encode_index_key(record.log_id, record.ts if legacy_key else None)
    for path in index_paths_for_record(record):
        store.set(f"{path}/{key}", True)


def generate_mock_records(
    project: str, today: date, count: int = 200, days: int = 45, seed: int = 7
) -> list[LogRecord]:
    rng = random.Random(seed)
    users = [f"user-{rng.randrange(16**6):06x}" for _ in range(12)]
    records = []
    for seq in range(count):
        day = today - timedelta(days=rng.randrange(days))
        moment = datetime.combine(day, time(), tzinfo=timezone.utc) + timedelta(
            seconds=rng.randrange(86400)
        )
        template = rng.choice(MESSAGE_TEMPLATES)
        message = template.format(
            n=rng.randrange(1, 20000),
            m=rng.randrange(0, 64),
            h=rng.randrange(16**8),
            f=rng.uniform(16, 90),
        )
        user = rng.choice(users)
        records.append(
            LogRecord(
                log_id=f"log-{seq:05d}",
                project=project,
                server=rng.choice(SERVERS),
                platform=rng.choice(PLATFORMS),
                date=day.isoformat(),
                user_id=user,
                nickname=NICKNAMES[users.index(user) % len(NICKNAMES)],
                message=message,
                ts=int(moment.timestamp() * 1000),
                seq=seq,
            )
        )
    return records


def seed_mock_store(store: InMemoryTreeStore, project: str, today: date, count: int = 200) -> int:
    records = generate_mock_records(project, today, count=count)
    for index, record in enumerate(records):
        write_record(store, record, legacy_key=index % 3 == 0)
    return len(records)
