from fastapi import APIRouter

from jobboard.api.routes import admin, applications, auth, employer, health, jobs, profile

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["public"])
api_router.include_router(employer.router, prefix="/employer", tags=["employer"])
api_router.include_router(applications.router, prefix="/applications", tags=["applications"])
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
