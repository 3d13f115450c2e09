"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create an account; 201
  POST /api/v1/auth/login     -- verify credentials; 200 with a token pair

Both handlers are plain ``def`` functions. Starlette runs them in its worker
thread pool, so bcrypt's CPU cost and the store's blocking I/O never stall
the event loop for other concurrent requests.

AuthError subclasses propagate out of the handlers and are rendered by the
exception handler in api/main.py. Each handler is wrapped in a controller-level
span; the service, hasher, token issuer and store spans nest beneath it.

Security:
  Cache-Control: no-store on login responses.
  Login failures render one generic message whether the email was unknown or
  the password was wrong (see api/main.py).

Note: this module deliberately avoids ``from __future__ import annotations``.
FastAPI resolves string annotations against the decorated function's globals,
and the traced() wrapper's globals belong to core/tracing.py.
"""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest
from auth.service import AuthService
from core.tracing import traced

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
@traced(
    "controller.RegisterUser",
    attributes=lambda args: {"email": args["body"].email, "full_name": args["body"].full_name},
    success="User registered successfully",
)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Register a new account with full name, email and password."""
    _service(request).register(body.full_name, body.email, body.password)
    return MessageResponse(message="User registered successfully")


@router.post("/auth/login", response_model=LoginResponse)
@traced(
    "controller.LoginUser",
    attributes=lambda args: {"email": args["body"].email},
    success="User logged in successfully",
)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return access and refresh tokens."""
    pair = _service(request).login(body.email, body.password)
    payload = LoginResponse.from_pair(pair, now=int(time.time()))
    resp = JSONResponse(status_code=200, content=payload.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp
