"""
FastAPI server for the halal certificate API
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings
from halalcert.api import CertificateAPI
from halalcert.models import utcnow
from halalcert.service import CertificateService, get_certificate_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logging.info("Starting API server...")

    app.state.certificate_api.service.db_manager.create_tables()
    logging.info("Database schema is ready")

    yield

    logging.info("Stopping API server...")
    app.state.certificate_api.service.db_manager.dispose()


def setup_logging(settings: Settings):
    """Configures file and console logging"""
    settings.create_directories()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler()
        ]
    )


def create_app(settings: Optional[Settings] = None,
               service: Optional[CertificateService] = None) -> FastAPI:
    """Creates the FastAPI application"""
    if service is None:
        service = get_certificate_service() if settings is None else CertificateService(settings=settings)
    settings = settings or get_settings()
    setup_logging(settings)

    if not settings.api_key:
        if settings.debug:
            logging.warning("API_KEY is not set: admin routes are open (debug mode)")
        else:
            logging.warning("API_KEY is not set: admin routes are disabled")

    app = FastAPI(
        title="Halal Certificate API",
        description="Issuance, public verification and revocation of halal certificates",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    certificate_api = CertificateAPI(
        service, settings.api_key, allow_unauthenticated_admin=settings.debug
    )
    app.state.certificate_api = certificate_api

    # Registered before the mount, which matches every path
    @app.get("/health", tags=["monitoring"])
    def health_check():
        """API and database health"""
        health_status = {
            "status": "checking",
            "timestamp": utcnow().isoformat(),
            "components": {
                "api": {"status": "healthy", "message": "API is running"}
            }
        }

        if app.state.certificate_api.service.db_manager.health_check():
            health_status["components"]["database"] = {
                "status": "healthy",
                "message": "Database connection is active"
            }
        else:
            health_status["components"]["database"] = {
                "status": "unhealthy",
                "message": "Database is unreachable"
            }

        all_healthy = all(
            comp.get("status") == "healthy"
            for comp in health_status["components"].values()
        )
        health_status["status"] = "healthy" if all_healthy else "unhealthy"

        return JSONResponse(content=health_status, status_code=200 if all_healthy else 503)

    app.mount("/", certificate_api.app)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug
    )
