from dotenv import load_dotenv
load_dotenv()

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from routers.auth import router as auth_router
from routers.debug import router as debug_router
from routers.health import router as health_router
from routers.maintenance import router as maintenance_router
from routers.marytts import router as marytts_router
from routers.sitemap import router as sitemap_router
from routers.zoom import router as zoom_router
from utils.config import Settings
from utils.database import Database, describe_database_error
from utils.exception_handlers import install_exception_handlers
from utils.logging_config import init_logging, install_request_logging

logger = logging.getLogger("app")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
	settings = settings or Settings.from_env()

	app = FastAPI(
		title="Ecouter Transcribe API",
		description="Auth, OAuth integrations, health monitoring and operational endpoints for the transcription app.",
		version="1.0.0",
	)

	# Built once and shared by reference with every handler
	app.state.settings = settings
	app.state.database = Database(settings.database_url)

	init_logging()
	install_request_logging(app)
	install_exception_handlers(app)

	if settings.jwt_secret_is_default:
		logger.warning("jwt_secret_fallback_in_use")
	if app.state.database.configured:
		try:
			app.state.database.create_all()
		except SQLAlchemyError as err:
			logger.error("database_init_failed", extra={"error": describe_database_error(err)})
	else:
		logger.warning("database_not_configured")

	app.include_router(auth_router)
	app.include_router(debug_router)
	app.include_router(health_router)
	app.include_router(marytts_router)
	app.include_router(zoom_router)
	app.include_router(maintenance_router)
	app.include_router(sitemap_router)

	# CORS settings (adjust origins as needed)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	@app.get("/")
	def read_root():
		return {"message": "Welcome to the Ecouter Transcribe API"}

	return app


app = create_app()
