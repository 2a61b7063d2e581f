"""
Main FastAPI application entry point.
Nirman - public works proposal and progress tracking
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nirman.config import LOG_LEVEL, NIRMAN_DEPLOYMENT, USE_POSTGRES
from nirman.database import get_db, init_database
from nirman.exceptions import NirmanError
from nirman.logging_config import setup_logging
from nirman.routes import admin_routes, auth_routes, progress_routes, proposal_routes, report_routes

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=f"Nirman {NIRMAN_DEPLOYMENT}",
    description="Public works proposal, approval and progress tracking",
    version="1.0.0"
)

# 500 messages, keyed by endpoint function name
ERROR_MESSAGES = {
    "login": "Error during login",
    "create_work_proposal": "Error creating work proposal",
    "list_work_proposals": "Error fetching work proposals",
    "get_work_proposal": "Error fetching work proposal",
    "submit_technical_approval": "Error processing technical approval",
    "submit_administrative_approval": "Error processing administrative approval",
    "start_tender_process": "Error starting tender process",
    "award_tender_process": "Error awarding tender",
    "issue_work_order": "Error creating work order",
    "update_work_progress": "Error updating work progress",
    "add_installment": "Error adding installment",
    "complete_work": "Error completing work",
    "get_progress_history": "Error fetching progress history",
    "get_all_work_progress": "Error fetching work progress",
    "dashboard_report": "Error fetching dashboard statistics",
    "department_wise_report": "Error fetching department-wise report",
    "scheme_wise_report": "Error fetching scheme-wise report",
    "pending_report": "Error fetching pending works report",
    "create_user": "Error creating user",
    "list_users": "Error fetching users",
}


def operation_error_message(request: Request) -> str:
    endpoint = request.scope.get("endpoint")
    return ERROR_MESSAGES.get(getattr(endpoint, "__name__", None), "Internal server error")


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_database()
    logger.info("Nirman %s started (%s)", NIRMAN_DEPLOYMENT, "PostgreSQL" if USE_POSTGRES else "SQLite")


# Include route modules
app.include_router(auth_routes.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(proposal_routes.router, prefix="/api/work-proposals", tags=["Work Proposals"])
app.include_router(progress_routes.router, tags=["Work Progress"])
app.include_router(report_routes.router, prefix="/api/reports", tags=["Reports"])
app.include_router(admin_routes.router, prefix="/api/admin", tags=["Admin"])


@app.get("/api/health")
async def health():
    with get_db() as conn:
        conn.cursor().execute("SELECT 1")
    return {
        "success": True,
        "data": {
            "deployment": NIRMAN_DEPLOYMENT,
            "database": "postgresql" if USE_POSTGRES else "sqlite",
        },
    }


# Error handlers
@app.exception_handler(NirmanError)
async def nirman_error_handler(request: Request, exc: NirmanError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    logger.warning("%s %s -> 400: validation failed %s", request.method, request.url.path, errors)
    return JSONResponse(
        {"success": False, "message": "Validation failed", "errors": errors},
        status_code=400
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"success": False, "message": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    message = operation_error_message(request)
    logger.exception("%s: %s %s", message, request.method, request.url.path)
    return JSONResponse(
        {"success": False, "message": message, "error": str(exc)},
        status_code=500
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("nirman.main:app", host="127.0.0.1", port=8000, reload=True)
