"""
FastAPI main application for the Bookshelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from accounts.errors import AccountError
from accounts.models import Principal
from accounts.service import AccountService
from accounts.store import MongoUserStore
from api.auth import get_request_principal, get_token_service, resolve_principal
from api.config import config as api_config
from api.models import (
    AuthResponse, ErrorResponse, HealthResponse, LoginRequest, RegisterRequest,
    SaveBookRequest, SavedBooksResponse, SearchResponse, SyncRequest, SyncResponse,
    UserResponse
)
from catalog.client import CatalogClient, CatalogError
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global services
account_service: AccountService = None
catalog_client: CatalogClient = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global account_service, catalog_client

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )
    logger.info("Starting Bookshelf API")

    client = AsyncIOMotorClient(config.mongodb_url)
    try:
        database = client[config.mongodb_database]

        # Test connection
        await database.command("ping")
        logger.info("Database connection established")

        store = MongoUserStore(database[config.mongodb_users_collection])
        await store.ensure_indexes()

        account_service = AccountService(store, get_token_service())
        catalog_client = CatalogClient.from_config(config)

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        client.close()
        raise

    yield

    # Shutdown
    logger.info("Shutting down Bookshelf API")
    client.close()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    Search the book catalog and keep a personal list of saved books.

    ## Authentication

    Register or log in to receive a bearer token, then send it on every call:

    ```
    Authorization: Bearer your_token_here
    ```

    Searching works without a token. Reading or changing saved books requires one.
    Saving a book twice or removing a book that is not saved both succeed without
    changing anything.
    """,
    version=api_config.api_version,
    lifespan=lifespan,
    dependencies=[Depends(resolve_principal)],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def get_account_service() -> AccountService:
    if not account_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Account service not available"
        )
    return account_service


def get_catalog_client() -> CatalogClient:
    if not catalog_client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available"
        )
    return catalog_client


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(AccountError)
async def account_exception_handler(request, exc: AccountError):
    """Handle account, token and saved-book errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(CatalogError)
async def catalog_exception_handler(request, exc: CatalogError):
    """Handle upstream catalog failures."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            status_code=exc.status_code
        ).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Render malformed request bodies as Invalid."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Invalid input",
            detail="; ".join(messages),
            status_code=status.HTTP_400_BAD_REQUEST
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    try:
        db_status = "unavailable"
        if account_service:
            health_info = await account_service.store.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status=db_status
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status="unhealthy"
        )


# Auth endpoints
@app.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
)
async def register(body: RegisterRequest):
    """
    Create an account and receive a bearer token.

    - **username**: Unique username
    - **email**: Unique email address
    - **password**: Password
    """
    result = await get_account_service().register(body.username, body.email, body.password)
    return AuthResponse.from_result(result)


@app.post("/auth/login", response_model=AuthResponse, tags=["Auth"])
async def login(body: LoginRequest):
    """
    Log in with a username or email and receive a bearer token.
    """
    result = await get_account_service().login(body.identifier, body.password)
    return AuthResponse.from_result(result)


# User endpoints
@app.get("/me", response_model=UserResponse, tags=["User"])
async def me(principal: Optional[Principal] = Depends(resolve_principal)):
    """Get the logged-in user with their saved books."""
    user = await get_account_service().me(principal)
    return UserResponse.from_user(user)


@app.get("/me/books", response_model=SavedBooksResponse, tags=["Saved Books"])
async def list_saved_books(principal: Optional[Principal] = Depends(resolve_principal)):
    """Get the authoritative list of saved books."""
    saved_books = await get_account_service().list_saved_books(principal)
    return SavedBooksResponse(saved_books=saved_books, book_count=len(saved_books))


@app.post("/me/books", response_model=SavedBooksResponse, tags=["Saved Books"])
async def save_book(
    body: SaveBookRequest,
    principal: Optional[Principal] = Depends(resolve_principal)
):
    """
    Save a book. Saving a book that is already saved changes nothing.

    - **book_id**: External catalog identifier (required)
    - **link**: Defaults to the catalog home page when omitted
    """
    update = await get_account_service().save_book(principal, body.model_dump())
    return SavedBooksResponse.from_update(update)


@app.delete("/me/books/{book_id}", response_model=SavedBooksResponse, tags=["Saved Books"])
async def remove_book(
    book_id: str,
    principal: Optional[Principal] = Depends(resolve_principal)
):
    """Remove a saved book. Removing a book that is not saved changes nothing."""
    update = await get_account_service().remove_book(principal, book_id)
    return SavedBooksResponse.from_update(update)


@app.post("/me/books/sync", response_model=SyncResponse, tags=["Saved Books"])
async def sync_saved_books(
    body: SyncRequest,
    principal: Optional[Principal] = Depends(resolve_principal)
):
    """
    Compare a client cache of saved book ids with the server list.

    Clients should replace their cache with **saved_book_ids**.
    """
    reconciliation = await get_account_service().reconcile(principal, body.book_ids)
    return SyncResponse(
        saved_book_ids=reconciliation.saved_book_ids,
        stale=reconciliation.stale,
        missing=reconciliation.missing,
        in_sync=reconciliation.in_sync,
    )


# Search endpoint (authentication optional)
@app.get("/search", response_model=SearchResponse, tags=["Search"])
async def search(request: Request, q: str = "", max_results: Optional[int] = None):
    """
    Search the book catalog.

    - **q**: Search terms
    - **max_results**: Optional result cap

    Logged-in callers get a **saved** flag on every result.
    """
    books = await get_catalog_client().search(q, max_results)

    principal = get_request_principal(request)
    if principal is not None:
        saved_books = await get_account_service().list_saved_books(principal)
        saved_ids = {book.book_id for book in saved_books}
        for book in books:
            book.saved = book.book_id in saved_ids

    return SearchResponse(query=q.strip(), total=len(books), books=books)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
