"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, users

api_router = APIRouter()

# Auth (login, refresh, logout, me)
api_router.include_router(auth.router)

# Admin user management
api_router.include_router(users.router)
