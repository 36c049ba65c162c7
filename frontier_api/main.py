"""FastAPI application entrypoint."""

from fastapi import FastAPI

from frontier_api.routes import health, optimization, root

app = FastAPI(
    title="Frontier API",
    description="Markowitz mean-variance portfolio optimization service",
    version="0.1.0",
)

app.include_router(root.router)
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(optimization.router, prefix="/optimization", tags=["optimization"])
