from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from . import auth
from .agents import (
    CachingAgent,
    ClusterCachingAgent,
    ImageCachingAgent,
    InstanceCachingAgent,
    InstanceTypeCachingAgent,
    LoadBalancerCachingAgent,
)
from .cache import InMemoryCacheStore, Neo4jCacheStore, ProviderCache
from .cache.store import CacheStore
from .config import Settings, get_settings
from .errors import AgentFetchFailure
from .export import dump_store, load_store
from .providers import AwsFetcher
from .scheduler import AgentScheduler
from .views import ImageSearchProvider

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="relcache relationship cache CLI")
    parser.add_argument("command", choices=["refresh", "serve", "find-images"], help="command to run")
    parser.add_argument("query", nargs="?", help="image id or name prefix (find-images)")
    parser.add_argument("--accounts", help="comma-separated AWS profiles (default: settings)")
    parser.add_argument("--regions", help="comma-separated AWS regions (default: settings)")
    parser.add_argument("--output", "-o", help="directory to dump the cache to after refresh")
    parser.add_argument("--from", dest="source", help="cache dump directory to search (find-images)")
    parser.add_argument("--account", help="account filter (find-images)")
    parser.add_argument("--region", help="region filter (find-images)")
    return parser.parse_args(argv)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_store(settings: Settings) -> CacheStore:
    if settings.store_backend == "neo4j":
        from neo4j import GraphDatabase

        driver = GraphDatabase.driver(settings.neo4j_uri, auth=(settings.neo4j_user, settings.neo4j_password))
        store = Neo4jCacheStore(driver)
        store.ensure_indexes()
        return store
    return InMemoryCacheStore()


def build_agents(settings: Settings, accounts: List[str], regions: List[str]) -> List[CachingAgent]:
    """One agent per (account, region, resource kind).

    Accounts whose credentials cannot be resolved are skipped with an error.
    """
    agents: List[CachingAgent] = []
    for account in accounts:
        for region in regions:
            try:
                session, caller = auth.resolve_session(profile=account, region=region)
            except AgentFetchFailure as e:
                logger.error("Skipping %s/%s: %s", account, region, e)
                continue
            logger.info("Resolved %s as %s in %s", account, caller.arn, region)
            fetcher = AwsFetcher(session, account, region, page_size=settings.page_size)
            agents.extend(
                [
                    ClusterCachingAgent(fetcher, account, region, aux_fetch_workers=settings.aux_fetch_workers),
                    InstanceCachingAgent(fetcher, account, region),
                    ImageCachingAgent(fetcher, account, region, public_owner=settings.public_image_owner),
                    InstanceTypeCachingAgent(fetcher, account, region),
                    LoadBalancerCachingAgent(fetcher, account, region),
                ]
            )
    return agents


def build_scheduler(settings: Settings, store: CacheStore, args: argparse.Namespace) -> AgentScheduler:
    accounts = [a.strip() for a in args.accounts.split(",") if a.strip()] if args.accounts else settings.get_accounts()
    regions = [r.strip() for r in args.regions.split(",") if r.strip()] if args.regions else settings.get_regions()
    return AgentScheduler(
        build_agents(settings, accounts, regions),
        ProviderCache(store),
        agent_timeout=settings.agent_timeout,
        max_workers=settings.max_agent_workers,
    )


def run_refresh(args: argparse.Namespace, settings: Settings) -> int:
    store = build_store(settings)
    scheduler = build_scheduler(settings, store, args)
    try:
        results = scheduler.run_once()
    finally:
        scheduler.stop()

    summary = {"agents": [r.to_dict() for r in results], "entities": store.stats()}
    if args.output:
        dump_store(store, Path(args.output))
        summary["output"] = args.output
    print(json.dumps(summary, indent=2))
    return 0 if all(r.ok for r in results) else 1


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    from .api.server import create_app

    store = build_store(settings)
    scheduler = build_scheduler(settings, store, args)
    scheduler.start(settings.refresh_interval)
    try:
        app = create_app(store, scheduler, cors_origins=settings.get_cors_origins())
        app.run(host=settings.api_host, port=settings.api_port)
    finally:
        scheduler.stop()
    return 0


def run_find_images(args: argparse.Namespace, settings: Settings) -> int:
    if not args.query or not args.source:
        raise SystemExit("find-images requires a query and --from DIR")
    store = InMemoryCacheStore()
    load_store(store, Path(args.source))
    results = ImageSearchProvider(store).find(args.query, account=args.account, region=args.region)
    print(json.dumps([r.to_dict() for r in results], indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings)
    if args.command == "refresh":
        return run_refresh(args, settings)
    if args.command == "serve":
        return run_serve(args, settings)
    return run_find_images(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
