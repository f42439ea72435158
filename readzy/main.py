import uvicorn
from fastapi import FastAPI

from readzy import __version__
from readzy.core.startup import lifespan
from readzy.core.middleware import logging_middleware, setup_cors_middleware
from readzy.core.exceptions import setup_exception_handlers
from readzy.core.settings import Settings

from readzy.api import auth, books

# Initialize the FastAPI app with the lifespan manager
app = FastAPI(
    title="Readzy",
    version=__version__,
    lifespan=lifespan,
)

# Load settings for middleware configuration
settings = Settings()

# Setup CORS middleware (must be added before other middleware)
setup_cors_middleware(app, settings.CORS_ORIGINS)

app.middleware("http")(logging_middleware)

setup_exception_handlers(app)

app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(books.router, prefix="/api", tags=["books"])

@app.get("/health")
async def health():
    """
    Health check endpoint to confirm the service is running.
    """
    return {"status": "healthy", "service": "readzy"}


def run():
    uvicorn.run("readzy.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
