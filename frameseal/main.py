from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from frameseal.config import settings
from frameseal.routers.frames import router as frames_router
from frameseal.services.errors import ConfigError


async def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
	return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


def create_app() -> FastAPI:
	app = FastAPI(title="FrameSeal - Photo Frame API", version="0.1.0")

	# CORS (adjust origins in production)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=False,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	app.add_exception_handler(ConfigError, config_error_handler)

	# Routers
	app.include_router(frames_router)

	return app


app = create_app()


if __name__ == "__main__":
	# Local dev server: uvicorn frameseal.main:app --reload
	import uvicorn

	uvicorn.run("frameseal.main:app", host=settings.server.host, port=settings.server.port, reload=True)
