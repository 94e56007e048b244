"""Person lookup endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from api.dependencies import get_current_person_cache, get_person_service, get_settings
from core.config import Settings
from schemas.person import PersonListResponse, PersonResponse
from schemas.person_query import PersonQueryOptions, filter_node_adapter, parse_csv, parse_sort
from services.current_person_cache import CurrentPersonCache
from services.person_service import PersonService

router = APIRouter(prefix="/people", tags=["people"])


def _build_options(
    search: str | None = None,
    filter_json: str | None = None,
    sort: str | None = None,
    include_local: str | None = None,
) -> PersonQueryOptions:
    """Parse query parameters into query options, rejecting malformed input with 400."""
    try:
        return PersonQueryOptions(
            search=search,
            filter=filter_node_adapter.validate_json(filter_json) if filter_json else None,
            sort=parse_sort(sort),
            local_data_attributes=parse_csv(include_local),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid query: {e.errors()[0]['msg']}")


@router.get("/", response_model=PersonListResponse)
async def list_people(
    search: str | None = Query(
        default=None,
        description="Whitespace separated terms; each must match the given or family name",
    ),
    filter_json: str | None = Query(
        default=None,
        alias="filter",
        description="JSON filter tree using logical attribute paths",
    ),
    sort: str | None = Query(
        default=None,
        description="Comma separated sort paths, '-' prefix for descending (e.g. familyName,-givenName)",  # noqa: E501
    ),
    include_local: str | None = Query(
        default=None,
        description="Comma separated local data attributes to include",
    ),
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    per_page: int = Query(default=30, ge=1, description="Page size"),
    service: PersonService = Depends(get_person_service),
    settings: Settings = Depends(get_settings),
) -> PersonListResponse:
    """
    List people with search, filtering, and sorting.

    - **search**: every term must be contained (case-insensitive) in the given or family name
    - **filter**: filter tree, e.g. {"node_type": "condition", "path": "familyName", "operator": "equals", "value": "Doe"}
    - **sort**: multi-key sort; the first field is the primary key
    - **include_local**: local data attributes to return for each person
    """  # noqa: E501
    if per_page > settings.max_page_size:
        raise HTTPException(
            status_code=400,
            detail=f"per_page must not exceed {settings.max_page_size}",
        )
    options = _build_options(search, filter_json, sort, include_local)
    persons = await service.get_persons(page, per_page, options)
    return PersonListResponse(
        items=[PersonResponse.model_validate(p) for p in persons],
        page=page,
        per_page=per_page,
    )


@router.get("/me", response_model=PersonResponse | None)
async def get_current_person(
    filter_json: str | None = Query(default=None, alias="filter"),
    include_local: str | None = Query(default=None),
    service: PersonService = Depends(get_person_service),
    current: CurrentPersonCache = Depends(get_current_person_cache),
) -> PersonResponse | None:
    """Get the person of the calling user; null for service or anonymous callers."""
    options = _build_options(filter_json=filter_json, include_local=include_local)
    person = await service.get_current_person(current, options)
    if person is None:
        return None
    return PersonResponse.model_validate(person)


@router.get("/{identifier}", response_model=PersonResponse)
async def get_person(
    identifier: str,
    filter_json: str | None = Query(default=None, alias="filter"),
    include_local: str | None = Query(default=None),
    service: PersonService = Depends(get_person_service),
    current: CurrentPersonCache = Depends(get_current_person_cache),
) -> PersonResponse:
    """Get a single person by identifier."""
    options = _build_options(filter_json=filter_json, include_local=include_local)
    person = await service.get_person(identifier, options, current=current)
    return PersonResponse.model_validate(person)
