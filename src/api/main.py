"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import set_person_service
from api.routers import health, people
from core.config import get_settings
from core.person_cache import PersonCache, set_person_cache
from directory.memory import InMemoryDirectory
from services.exceptions import (
    DirectoryUnavailableError,
    PersonNotFoundError,
    TooManyResultsToSortError,
    UnmappedFieldError,
    UnsatisfiedLocalDataError,
)
from services.person_service import PersonService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Distributed person cache (Redis)
    person_cache = await PersonCache.connect(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    set_person_cache(person_cache)

    # Startup: Directory gateway and person service
    if app_settings.directory_seed_file:
        gateway = InMemoryDirectory.from_file(
            app_settings.directory_seed_file,
            max_sort_results=app_settings.directory_max_sort_results,
        )
    else:
        logger.warning("No DIRECTORY_SEED_FILE configured, serving an empty directory")
        gateway = InMemoryDirectory(max_sort_results=app_settings.directory_max_sort_results)
    set_person_service(
        PersonService.from_settings(app_settings, gateway, person_cache=person_cache),
    )

    yield

    # Shutdown: Clean up service and cache
    set_person_service(None)
    set_person_cache(None)
    await person_cache.close()


app = FastAPI(
    title="Person Directory API",
    description="Person lookups against a directory with filtering, sorting and search.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(UnmappedFieldError)
async def unmapped_field_exception_handler(
    _request: Request, exc: UnmappedFieldError,
) -> JSONResponse:
    """A filter or sort referenced an attribute this deployment does not expose."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnsatisfiedLocalDataError)
async def unsatisfied_local_data_exception_handler(
    _request: Request, exc: UnsatisfiedLocalDataError,
) -> JSONResponse:
    """Requested local data attributes could not be provided."""
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "attributes": exc.attributes},
    )


@app.exception_handler(PersonNotFoundError)
async def person_not_found_exception_handler(
    _request: Request, exc: PersonNotFoundError,
) -> JSONResponse:
    """No person with the requested identifier."""
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(TooManyResultsToSortError)
async def too_many_results_exception_handler(
    _request: Request, exc: TooManyResultsToSortError,
) -> JSONResponse:
    """The directory cannot sort this many results; the caller has to narrow the query."""
    return JSONResponse(status_code=507, content={"detail": str(exc)})


@app.exception_handler(DirectoryUnavailableError)
async def directory_unavailable_exception_handler(
    _request: Request, exc: DirectoryUnavailableError,
) -> JSONResponse:
    """The directory could not be reached."""
    return JSONResponse(status_code=502, content={"detail": str(exc)})


app.include_router(health.router)
app.include_router(people.router)
