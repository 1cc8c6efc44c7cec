"""
Billing API Application Factory
"""

from typing import Optional
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .dependencies import BillingSystem, get_billing_system
from .contracts import router as contracts_router
from .reports import router as reports_router
from .messages import router as messages_router
from .simulator import router as simulator_router
from .collections import router as collections_router
from .. import __version__


def create_app(system: Optional[BillingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Billing system to serve; the process-wide one is created
            lazily on the first request when omitted
    """
    app = FastAPI(
        title="Billing Core API",
        description="Installment lending and sales billing with collection messaging",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if system is not None:
        app.dependency_overrides[get_billing_system] = lambda: system

    app.include_router(contracts_router, prefix="/contracts", tags=["Contracts"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])
    app.include_router(messages_router, prefix="/messages", tags=["Messages"])
    app.include_router(simulator_router, prefix="/simulator", tags=["Simulator"])
    app.include_router(collections_router, prefix="/collections", tags=["Collections"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "billing_core_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Billing Core API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "contracts": "/contracts",
                "reports": "/reports",
                "messages": "/messages",
                "simulator": "/simulator",
                "collections": "/collections",
            }
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the API server"""
    uvicorn.run(
        "billing_core.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
