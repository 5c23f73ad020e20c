from fastapi import APIRouter

from app.routers import alerts, dashboard, documents, drivers, entities, health, jobs, review, vehicles

api_router = APIRouter()
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(drivers.router, prefix="/drivers", tags=["Drivers"])
api_router.include_router(vehicles.router, prefix="/vehicles", tags=["Vehicles"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(entities.router, prefix="/entities", tags=["Entities"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(review.router, prefix="/review", tags=["Review"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["Alerts"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
