import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.exceptions import (
    UnauthorizedException,
    NotFoundException,
    ForbiddenException,
    ValidationException,
    UniqueRoleConflictException,
    RoleInUseException,
    InvalidStateException,
    ConcurrencyConflictException,
    MandatoryRoleViolationException,
)
from app.routes import association_routes, custom_role_routes, member_routes, role_routes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,  # Disable in production
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
cors_origins = settings.cors_origins_list
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Exception handlers
@app.exception_handler(UnauthorizedException)
async def unauthorized_exception_handler(request: Request, exc: UnauthorizedException):
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)})


@app.exception_handler(NotFoundException)
async def not_found_exception_handler(request: Request, exc: NotFoundException):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ForbiddenException)
async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(ValidationException)
async def validation_exception_handler(request: Request, exc: ValidationException):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "violations": exc.violations},
    )


@app.exception_handler(UniqueRoleConflictException)
async def unique_role_conflict_handler(request: Request, exc: UniqueRoleConflictException):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "role_id": exc.role_id,
            "holder_member_id": exc.holder_member_id,
        },
    )


@app.exception_handler(RoleInUseException)
async def role_in_use_handler(request: Request, exc: RoleInUseException):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "role_id": exc.role_id, "holder_ids": exc.holder_ids},
    )


@app.exception_handler(InvalidStateException)
async def invalid_state_handler(request: Request, exc: InvalidStateException):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ConcurrencyConflictException)
async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflictException):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "expected": exc.expected, "actual": exc.actual},
    )


@app.exception_handler(MandatoryRoleViolationException)
async def mandatory_role_violation_handler(request: Request, exc: MandatoryRoleViolationException):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "role_id": exc.violation.role_id},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }


# Include routers
app.include_router(association_routes.router, prefix="/api/associations", tags=["Associations"])
association_prefix = "/api/associations/{association_id}"
app.include_router(role_routes.router, prefix=association_prefix, tags=["Roles"])
app.include_router(member_routes.router, prefix=association_prefix, tags=["Members"])
app.include_router(
    custom_role_routes.router, prefix=f"{association_prefix}/custom-roles", tags=["Custom Roles"]
)
