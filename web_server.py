#!/usr/bin/env python3
"""
FastAPI web server for the cross-DEX arbitrage scanner.

Serves the read-only API over stored scan records. The scanner CLI mounts
the same app next to the scan loop so both share one database handle.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dex.config import ScannerConfig
from dex.store import ResultStore
from pair_arbitrage.exceptions import PersistenceFailure
from pair_arbitrage.version import __version__
from pair_arbitrage.web_router import ApiState, persistence_error_handler, router


def create_app(config: ScannerConfig, store: Optional[ResultStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Scanner config (exchange list, pair, db path)
        store: Shared result store; when omitted the app opens its own for its lifetime
    """
    owns_store = store is None
    if store is None:
        store = ResultStore(config.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store:
            await store.open()
        try:
            yield
        finally:
            if owns_store:
                await store.close()

    app = FastAPI(
        title="Cross-DEX Arbitrage Scanner", version=__version__, lifespan=lifespan
    )

    # Read-only API, open to any dashboard origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.api = ApiState(config, store)
    app.add_exception_handler(PersistenceFailure, persistence_error_handler)
    app.include_router(router)
    return app


def build_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """uvicorn server that can share an event loop with the scanner."""
    return uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))


if __name__ == "__main__":
    from dotenv import load_dotenv

    import logging_config
    from dex.config import DEFAULT_CONFIG_PATH, load_config

    load_dotenv()
    logging_config.setup()

    config = load_config(os.getenv("SCANNER_CONFIG", DEFAULT_CONFIG_PATH))
    uvicorn.run(create_app(config), host=config.api_host, port=config.api_port)
