import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from obelysk_privacy.api.routes import router
from obelysk_privacy.core.config import PrivacySettings
from obelysk_privacy.core.errors import StorageReadError
from obelysk_privacy.merkle.storage import OnChainMerkleProver

logger = logging.getLogger("obelysk_privacy.api")


def create_app(
    prover: OnChainMerkleProver | None = None,
    settings: PrivacySettings | None = None,
) -> FastAPI:
    """
    Build the coordinator app.

    Args:
        prover: Prover to serve from. When omitted, the lifespan hook builds
            one from settings for the active network.
        settings: Defaults to PrivacySettings.from_env().
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reader = None
        app.state.prover = prover
        if prover is None:
            config = settings or PrivacySettings.from_env()
            try:
                network = config.active_network()
            except ValueError as e:
                logger.warning(f"Merkle prover disabled: {e}")
                network = None
            if network is not None:
                # Needs the `rpc` extra
                from obelysk_privacy.merkle.rpc import StarknetStorageReader

                reader = StarknetStorageReader(
                    network.rpc_url,
                    network.privacy_pools_address,
                    timeout=config.read_timeout,
                )
                app.state.prover = OnChainMerkleProver(
                    reader,
                    network=network.name,
                    pool_address=network.privacy_pools_address,
                    batch_size=config.batch_size,
                    read_timeout=config.read_timeout,
                    scheme=config.hash(),
                )
                logger.info(f"Serving Merkle proofs for {network.name}:{network.privacy_pools_address}")

        yield

        if reader is not None:
            await reader.aclose()

    app = FastAPI(
        title="Obelysk Privacy Coordinator",
        description="Merkle inclusion proofs for Obelysk privacy pool deposits",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow CORS for easy frontend integration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StorageReadError)
    async def storage_error_handler(request: Request, exc: StorageReadError):
        logger.error(f"Storage read failed: {exc}")
        return JSONResponse(
            status_code=502,
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health_check():
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


# uvicorn obelysk_privacy.api.server:app
app = create_app()
