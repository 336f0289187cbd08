"""FastAPI application exposing the user directory over HTTP."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from .config import StoreConfig, load_config
from .errors import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    InvalidInputError,
    MissingIdentifierError,
    NotFoundError,
    TransportError,
)
from .models import User
from .security import MIN_PASSWORD_LENGTH
from .service import AccountService
from .store import UserStore

logger = logging.getLogger("userstore.api")


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    last_login: Optional[datetime] = None


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=254)
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)

    @model_validator(mode="after")
    def _ensure_non_empty(self):  # type: ignore[override]
        if self.name is None and self.email is None and self.password is None:
            raise ValueError("Update payload must include at least one field")
        return self


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, name=user.name, last_login=user.last_login)


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_error_handlers(app: FastAPI) -> None:
    """Translate directory errors into HTTP responses."""

    @app.exception_handler(MissingIdentifierError)
    async def missing_identifier_handler(request: Request, exc: MissingIdentifierError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError) -> JSONResponse:
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "User not found")

    @app.exception_handler(DuplicateIdentityError)
    async def duplicate_handler(request: Request, exc: DuplicateIdentityError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "A user with that email already exists")

    @app.exception_handler(TransportError)
    async def transport_handler(request: Request, exc: TransportError) -> JSONResponse:
        logger.error("Store unavailable while serving %s: %s", request.url.path, exc)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "User store is unavailable")


def create_app(
    *,
    store: UserStore | None = None,
    service: AccountService | None = None,
    config: StoreConfig | None = None,
    initialize_table: bool = False,
) -> FastAPI:
    if service is None:
        if store is None:
            if config is None:
                config = load_config()
            store = UserStore.from_config(config)
        service = AccountService(store)

    if initialize_table:
        service.store.initialize_table()

    app = FastAPI(
        title="User Directory",
        description="User accounts with globally unique email addresses",
        version="1.0.0",
    )
    app.state.service = service
    register_error_handlers(app)

    def get_service() -> AccountService:
        return service

    @app.get("/health")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/users", response_model=List[UserResponse])
    def list_users(svc: AccountService = Depends(get_service)) -> List[UserResponse]:
        return [user_to_response(user) for user in svc.list()]

    @app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(payload: CreateUserRequest, svc: AccountService = Depends(get_service)) -> UserResponse:
        user = svc.register(payload.name, payload.email, payload.password)
        return user_to_response(user)

    @app.get("/users/by-email/{email}", response_model=UserResponse)
    def read_user_by_email(email: str, svc: AccountService = Depends(get_service)) -> UserResponse:
        return user_to_response(svc.get_by_email(email))

    @app.get("/users/{user_id}", response_model=UserResponse)
    def read_user(user_id: str, svc: AccountService = Depends(get_service)) -> UserResponse:
        return user_to_response(svc.get(user_id))

    @app.put("/users/{user_id}", response_model=UserResponse)
    def update_user(
        user_id: str,
        payload: UpdateUserRequest,
        svc: AccountService = Depends(get_service),
    ) -> UserResponse:
        user = svc.update_profile(
            user_id,
            name=payload.name,
            email=payload.email,
            password=payload.password,
        )
        return user_to_response(user)

    @app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: str, svc: AccountService = Depends(get_service)) -> Response:
        svc.delete(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/login")
    def login(payload: LoginRequest, svc: AccountService = Depends(get_service)) -> Dict[str, str]:
        svc.authenticate(payload.email, payload.password)
        return {"status": "SUCCESS"}

    return app


__all__ = ["create_app", "register_error_handlers", "user_to_response"]
