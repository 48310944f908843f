"""JSONL dumps of the cache store, one file per namespace."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator

from relcache.cache.entity import Entity
from relcache.cache.store import CacheStore
from relcache.keys import Namespace

logger = logging.getLogger(__name__)


def json_serial(obj):
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Type {type(obj)} not serializable")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_jsonl(records: Iterable[Dict[str, Any]], path: Path) -> Path:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec, default=json_serial))
            f.write("\n")
    return path


def read_jsonl(path: Path) -> Iterator[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)


def dump_store(store: CacheStore, directory: Path) -> Dict[str, int]:
    """Write every namespace to ``<directory>/<namespace>.jsonl``.

    Returns:
        namespace -> number of entities written
    """
    directory = Path(directory)
    counts = {}
    for namespace in Namespace.values():
        ids = sorted(store.get_identifiers(namespace))
        entities = store.get_all(namespace, ids)
        write_jsonl((e.to_dict() for e in entities), directory / f"{namespace}.jsonl")
        counts[namespace] = len(entities)
    logger.info("Dumped %d entities to %s", sum(counts.values()), directory)
    return counts


def load_store(store: CacheStore, directory: Path) -> Dict[str, int]:
    """Load a dump written by dump_store into ``store``.

    Namespaces without a file are skipped.
    """
    directory = Path(directory)
    counts = {}
    for namespace in Namespace.values():
        path = directory / f"{namespace}.jsonl"
        if not path.exists():
            continue
        entities = [Entity.from_dict(rec, namespace) for rec in read_jsonl(path)]
        store.upsert(namespace, entities)
        counts[namespace] = len(entities)
    return counts
