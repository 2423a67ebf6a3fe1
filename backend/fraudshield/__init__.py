from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fraudshield.config import settings
from fraudshield.db import init_all_databases


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.fraudshield_data_dir)
    settings.fraudshield_models_dir.mkdir(parents=True, exist_ok=True)
    yield
    from fraudshield.services.model_loader import cancel_download

    await cancel_download()


def create_app() -> FastAPI:
    application = FastAPI(
        title="FraudShield Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from fraudshield.routers import health, models, presets

    application.include_router(health.router)
    application.include_router(
        presets.router, prefix="/presets", tags=["presets"]
    )
    application.include_router(
        models.router, prefix="/models", tags=["models"]
    )

    return application


app = create_app()
