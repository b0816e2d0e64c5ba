"""Process-wide service instances, handed to routes through FastAPI Depends."""

import logging
from functools import lru_cache

from redis.asyncio import Redis

from nodewar.db import Session
from nodewar.load_secrets import redis_host, redis_port, subscriber_queue_size
from nodewar.notifier import ChangeNotifier, InMemoryChangeNotifier
from nodewar.redis_notifier import RedisChangeNotifier
from nodewar.services.actions import ActionProcessor
from nodewar.services.graph_db import GraphDB
from nodewar.services.reconciler import IncomeReconciler


@lru_cache
def get_notifier() -> ChangeNotifier:
    if redis_host:
        redis = Redis(host=redis_host, port=redis_port, decode_responses=True, health_check_interval=30)
        return RedisChangeNotifier(redis)
    logging.warning("REDIS_HOST not set; change events stay inside this process")
    return InMemoryChangeNotifier(maxsize=subscriber_queue_size)


@lru_cache
def get_graph_db() -> GraphDB:
    return GraphDB(Session)


@lru_cache
def get_action_processor() -> ActionProcessor:
    return ActionProcessor(Session, get_notifier())


@lru_cache
def get_income_reconciler() -> IncomeReconciler:
    return IncomeReconciler(Session)
