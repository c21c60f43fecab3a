#!/usr/bin/env python3
"""
FastAPI backend for the bridge explorer.

Read-only HTTP views over the bridge ledger:
- Correlated cross-chain transfers (list and lookup by any stage hash)
- Token and address activity
- Transfer, asset and explorer statistics
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.presenters import (
    present_activity,
    present_asset_statistic,
    present_explorer_info,
    present_transfer,
    present_transfer_statistics,
)
from api.schemas import AddressTransactionsRequest, TokenTransactionsRequest, TransferListRequest
from bridge_explorer.config import Settings, load_settings
from bridge_explorer.errors import ExplorerError, StoreUnavailableError
from bridge_explorer.normalization.address import AssetAddressNormalizer
from bridge_explorer.statistics.aggregator import StatisticsAggregator
from bridge_explorer.storage.duckdb_store import DuckDBTransactionStore
from bridge_explorer.storage.redis_cache import RedisCounterCache
from bridge_explorer.storage.reference_data import ReferenceData, load_reference_data
from bridge_explorer.transfers.activity import ActivityService
from bridge_explorer.transfers.engine import CorrelationEngine
from bridge_explorer.transfers.pagination import CachedCounter, PageRequest
from bridge_explorer.utils.deadline import Deadline
from bridge_explorer.utils.logging_setup import configure_logging

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per process."""
    store: DuckDBTransactionStore
    cache: Optional[RedisCounterCache]
    reference: ReferenceData
    engine: CorrelationEngine
    activity: ActivityService
    statistics: StatisticsAggregator


def build_services(
    settings: Settings,
    store: DuckDBTransactionStore,
    cache: Optional[RedisCounterCache] = None,
    reference: Optional[ReferenceData] = None,
) -> Services:
    """
    Wire the explorer components around an open store.

    Raises:
        StoreUnavailableError: reference data could not be loaded
    """
    if reference is None:
        reference = load_reference_data(store)

    normalizer = AssetAddressNormalizer(settings.chain_encodings)
    counter = CachedCounter(
        cache=cache,
        ttl_seconds=settings.cache.counter_ttl_seconds,
        enabled=settings.cache.enabled,
    )
    return Services(
        store=store,
        cache=cache,
        reference=reference,
        engine=CorrelationEngine(store, counter=counter, normalizer=normalizer),
        activity=ActivityService(store, normalizer),
        statistics=StatisticsAggregator(store),
    )


def _open_services(settings: Settings) -> Optional[Services]:
    try:
        store = DuckDBTransactionStore(settings.duckdb.path, read_only=settings.duckdb.read_only)
    except StoreUnavailableError as e:
        logger.error("duckdb_connection_failed", error=e.message)
        return None

    cache = None
    if settings.cache.enabled:
        cache = RedisCounterCache(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            password=settings.redis.password,
            socket_timeout=settings.redis.socket_timeout,
            key_prefix=settings.cache.key_prefix,
        )

    try:
        return build_services(settings, store, cache)
    except StoreUnavailableError as e:
        logger.error("reference_data_load_failed", error=e.message)
        store.close()
        if cache is not None:
            cache.close()
        return None


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid request")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded settings (default: load_settings())
        services: Pre-built services (tests); otherwise opened in the lifespan
    """
    if settings is None:
        settings = load_settings()
        configure_logging(settings.logging.level, settings.logging.json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store and cache unless services were injected."""
        logger.info("api_starting")
        owned = app.state.services is None
        if owned:
            app.state.services = await asyncio.to_thread(_open_services, settings)
        logger.info("api_ready", store=app.state.services is not None)

        yield

        logger.info("api_shutting_down")
        if owned and app.state.services is not None:
            app.state.services.store.close()
            if app.state.services.cache is not None:
                app.state.services.cache.close()
            app.state.services = None
        logger.info("api_shutdown_complete")

    app = FastAPI(
        title="Bridge Explorer API",
        description="Cross-chain bridge transaction explorer",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ExplorerError)
    async def explorer_error_handler(request: Request, exc: ExplorerError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log("request_failed", path=request.url.path, status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.warning("request_invalid", path=request.url.path, error=message)
        return JSONResponse(status_code=400, content={"error": message})

    def get_services(request: Request) -> Services:
        current = request.app.state.services
        if current is None:
            raise StoreUnavailableError("transaction store not connected")
        return current

    def new_deadline() -> Deadline:
        return Deadline(settings.api.request_timeout_seconds)

    # ========================================================================
    # REST Endpoints
    # ========================================================================

    @app.get("/api/v1/health")
    async def health_check(request: Request):
        """Store and cache reachability."""
        current = request.app.state.services
        store_ok = False
        cache_ok = False
        if current is not None:
            store_ok = await asyncio.to_thread(current.store.ping)
            if current.cache is not None:
                cache_ok = await asyncio.to_thread(current.cache.ping)
        return {
            "status": "healthy" if store_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duckdb": store_ok,
            "redis": cache_ok,
        }

    @app.post("/api/v1/transfers/list")
    async def list_transfers(body: TransferListRequest, svc: Services = Depends(get_services)):
        """Cross-chain transfers, newest relay first."""
        page_request = PageRequest(body.page_no, body.page_size)
        deadline = new_deadline()
        page = await asyncio.to_thread(svc.engine.search, body.filter.to_filter(), page_request, deadline)
        return page.to_dict(lambda transfer: present_transfer(transfer, svc.reference))

    @app.get("/api/v1/transfers/{tx_hash}")
    async def get_transfer(tx_hash: str, svc: Services = Depends(get_services)):
        """One transfer by its source, relay or destination hash."""
        deadline = new_deadline()
        transfer = await asyncio.to_thread(svc.engine.lookup, tx_hash, deadline)
        return {"transfer": present_transfer(transfer, svc.reference) if transfer else None}

    @app.post("/api/v1/tokens/transactions")
    async def token_transactions(body: TokenTransactionsRequest, svc: Services = Depends(get_services)):
        page_request = PageRequest(body.page_no, body.page_size)
        deadline = new_deadline()
        page = await asyncio.to_thread(
            svc.activity.token_transactions, body.chain_id, body.token, page_request, deadline
        )
        return page.to_dict(lambda record: present_activity(record, svc.reference))

    @app.post("/api/v1/addresses/transactions")
    async def address_transactions(body: AddressTransactionsRequest, svc: Services = Depends(get_services)):
        page_request = PageRequest(body.page_no, body.page_size)
        deadline = new_deadline()
        page = await asyncio.to_thread(
            svc.activity.address_transactions, body.chain_id, body.address, page_request, deadline
        )
        return page.to_dict(lambda record: present_activity(record, svc.reference))

    @app.get("/api/v1/statistics/transfers")
    async def transfer_statistics(
        chain: Optional[int] = Query(default=None),
        svc: Services = Depends(get_services),
    ):
        """Token and chain counters, optionally for one chain."""
        deadline = new_deadline()
        stats = await asyncio.to_thread(svc.statistics.transfer_statistics, chain, deadline)
        return present_transfer_statistics(stats, svc.reference)

    @app.get("/api/v1/statistics/assets")
    async def asset_statistics(svc: Services = Depends(get_services)):
        deadline = new_deadline()
        stats = await asyncio.to_thread(svc.statistics.asset_statistics, deadline)
        return {"assets": [present_asset_statistic(stat) for stat in stats]}

    @app.get("/api/v1/explorer/info")
    async def explorer_info(svc: Services = Depends(get_services)):
        deadline = new_deadline()
        info = await asyncio.to_thread(svc.statistics.explorer_info, deadline)
        return present_explorer_info(info, svc.reference)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=app.state.settings.api.host,
        port=app.state.settings.api.port,
        log_level="info",
    )
