from fastapi import APIRouter

from app.api.endpoints import studies, surveys

api_router = APIRouter()

api_router.include_router(surveys.router, prefix="/surveys", tags=["surveys"])
api_router.include_router(studies.router, prefix="/studies", tags=["studies"])
