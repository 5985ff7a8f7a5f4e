from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import TokenService
from config import Settings, get_settings
from database import Database
from errors import register_error_handlers
from logging_config import setup_logging
from routers import auth_router, patients_router, users_router


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API with its store and token service bound to ``settings``"""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_json)

    app = FastAPI(title=settings.api_title, version=settings.api_version)

    db = Database(settings.database_path)
    db.init_schema()

    app.state.settings = settings
    app.state.db = db
    app.state.tokens = TokenService.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Include routers
    app.include_router(auth_router.router)
    app.include_router(users_router.router)
    app.include_router(patients_router.router)

    # Root endpoint
    @app.get("/")
    def root():
        return {
            "message": "Clinic Management System API",
            "docs": "/docs",
            "endpoints": {
                "signup": "POST /api/auth/signup",
                "login": "POST /api/auth/login",
                "current_user": "GET /api/auth/me",
                "update_profile": "PATCH /api/auth/me",
                "change_password": "POST /api/auth/me/password",
                "list_users": "GET /api/users",
                "set_user_status": "PATCH /api/users/{user_id}/status",
                "patients": "GET|POST /api/patients",
                "patient": "GET|PUT|DELETE /api/patients/{patient_id}",
            },
        }

    @app.get("/api/health")
    def health_check():
        return {"status": "healthy", "service": "clinic-api"}

    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run("main:create_app", factory=True, host=settings.host, port=settings.port, reload=True)
