import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.routers import bundles, health, journeys, nodes
from app.domain.errors import (
    ConflictError,
    FatalError,
    NotFoundError,
    PartialBatchFailure,
    UnresolvedDependencyError,
    ValidationError,
)
from app.application.event_handlers import register_event_handlers

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Journey Transfer API",
    description="Export, import and dependency resolution for authentication journeys",
    version=settings.VERSION,
)

# Register domain event handlers on startup
@app.on_event("startup")
async def startup_event():
    register_event_handlers()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)


# Domain error handlers
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PartialBatchFailure)
async def partial_failure_handler(request: Request, exc: PartialBatchFailure):
    return JSONResponse(
        status_code=207,
        content={
            "detail": exc.message,
            "errors": [str(error) for error in exc.errors],
            "partial": jsonable_encoder(exc.partial),
        },
    )


@app.exception_handler(FatalError)
async def fatal_error_handler(request: Request, exc: FatalError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(UnresolvedDependencyError)
async def unresolved_dependency_handler(request: Request, exc: UnresolvedDependencyError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "missing": exc.missing})

# Include routers
app.include_router(health.router, tags=["Health"])  # Health check endpoints first
app.include_router(journeys.router, tags=["Journeys"])
app.include_router(nodes.router, tags=["Nodes"])
app.include_router(bundles.router, tags=["Bundles"])

@app.get("/")
async def root():
    return {"message": "Welcome to the Journey Transfer API. See /docs for API documentation"}
