"""FastAPI application exposing the user directory over HTTP."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Tuple, Type

from fastapi import APIRouter, Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .database import Database
from .errors import (
    DuplicateEmailError,
    StorageError,
    UserNotFoundError,
    UserbaseError,
    ValidationError,
)
from .models import User, UserStatistics
from .service import UserService

logger = logging.getLogger("userbase.api")

_STATUS_BY_ERROR: Tuple[Tuple[Type[UserbaseError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (DuplicateEmailError, status.HTTP_400_BAD_REQUEST),
    (UserNotFoundError, status.HTTP_404_NOT_FOUND),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


class UserPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    bio: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    age: Optional[int]
    gender: Optional[str]
    bio: Optional[str]
    created_at: datetime


class UserCreatedResponse(BaseModel):
    id: int
    message: str
    name: str
    email: str


class UserUpdatedResponse(BaseModel):
    id: int
    message: str


class MessageResponse(BaseModel):
    message: str


class GenderCountResponse(BaseModel):
    gender: Optional[str]
    count: int


class StatisticsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_users: int = Field(..., alias="totalUsers")
    average_age: int = Field(..., alias="averageAge")
    gender_distribution: List[GenderCountResponse] = Field(..., alias="genderDistribution")


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        age=user.age,
        gender=user.gender,
        bio=user.bio,
        created_at=user.created_at,
    )


def statistics_to_response(stats: UserStatistics) -> StatisticsResponse:
    return StatisticsResponse(
        total_users=stats.total_users,
        average_age=stats.average_age,
        gender_distribution=[
            GenderCountResponse(gender=entry.gender, count=entry.count)
            for entry in stats.gender_distribution
        ],
    )


def status_for_error(exc: UserbaseError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the API application.

    When ``database`` is omitted the application opens its own database from
    ``settings`` (loaded from the environment by default), seeds it if
    configured to, and closes it on shutdown. An injected database is left
    open for its owner to close.
    """

    owns_database = database is None
    if database is None:
        if settings is None:
            settings = load_settings()
        database = Database(settings.database_path)
        database.initialize()
        if settings.seed_sample_data:
            database.seed_sample_users()

    service = UserService(database)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if owns_database:
                database.close()

    app = FastAPI(
        title="Userbase",
        description="Record management API for user profiles",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.service = service

    def get_service() -> UserService:
        return service

    router = APIRouter(prefix="/api")

    @router.get("/users", response_model=List[UserResponse])
    def list_users(svc: UserService = Depends(get_service)) -> List[UserResponse]:
        return [user_to_response(user) for user in svc.list_users()]

    @router.get("/users/search/{query}", response_model=List[UserResponse])
    def search_users(query: str, svc: UserService = Depends(get_service)) -> List[UserResponse]:
        return [user_to_response(user) for user in svc.search_users(query)]

    @router.get("/users/{user_id}", response_model=UserResponse)
    def read_user(user_id: str, svc: UserService = Depends(get_service)) -> UserResponse:
        return user_to_response(svc.get_user(user_id))

    @router.post(
        "/users",
        response_model=UserCreatedResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def create_user(
        payload: Optional[UserPayload] = Body(default=None),
        svc: UserService = Depends(get_service),
    ) -> UserCreatedResponse:
        payload = payload or UserPayload()
        user = svc.create_user(
            payload.name,
            payload.email,
            age=payload.age,
            gender=payload.gender,
            bio=payload.bio,
        )
        return UserCreatedResponse(
            id=user.id,
            message="User created successfully",
            name=user.name,
            email=user.email,
        )

    @router.put("/users/{user_id}", response_model=UserUpdatedResponse)
    def update_user(
        user_id: str,
        payload: Optional[UserPayload] = Body(default=None),
        svc: UserService = Depends(get_service),
    ) -> UserUpdatedResponse:
        payload = payload or UserPayload()
        updated_id = svc.update_user(
            user_id,
            name=payload.name,
            email=payload.email,
            age=payload.age,
            gender=payload.gender,
            bio=payload.bio,
        )
        return UserUpdatedResponse(id=updated_id, message="User updated successfully")

    @router.delete("/users/{user_id}", response_model=MessageResponse)
    def delete_user(user_id: str, svc: UserService = Depends(get_service)) -> MessageResponse:
        svc.delete_user(user_id)
        return MessageResponse(message="User deleted successfully")

    @router.get("/stats", response_model=StatisticsResponse)
    def read_statistics(svc: UserService = Depends(get_service)) -> StatisticsResponse:
        return statistics_to_response(svc.get_statistics())

    app.include_router(router)

    @app.exception_handler(UserbaseError)
    async def handle_userbase_error(_: Request, exc: UserbaseError) -> JSONResponse:
        return _error_response(status_for_error(exc), exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("Rejected request body: %s", exc.errors())
        return _error_response(status.HTTP_400_BAD_REQUEST, ValidationError.default_message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return _error_response(status.HTTP_404_NOT_FOUND, "Endpoint not found")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Server error while handling %s %s", request.method, request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return app


__all__ = ["create_app", "status_for_error", "statistics_to_response", "user_to_response"]
