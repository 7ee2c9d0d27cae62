"""
sdmverify — NTAG 424 DNA Secure Dynamic Messaging verification service.

FastAPI backend receiving scanned tag URLs (or their mirrored u/c/m
parameters) and answering whether the scan is authentic and fresh:
- per-tag key diversification of the SDM MAC key
- SDM session key derivation and AES-CMAC verification
- read-counter replay protection
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sdmverify import __version__
from sdmverify.api import scan
from sdmverify.sdm.verifier import verifier_from_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the verifier from the environment on startup."""
    logger.info("Starting sdmverify...")
    app.state.verifier = verifier_from_config()
    yield
    logger.info("Shutting down sdmverify")


app = FastAPI(
    title="sdmverify",
    description="NTAG 424 DNA SDM scan verification",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(scan.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
