#!/usr/bin/env python3
"""
Production Monitor - REST API Server
HTTP access to monitoring status, metrics, alerts, incidents and remediation history.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config.settings import ApiConfig
from ..core.models import AlertSeverity, IncidentStatus

logger = structlog.get_logger()

ALL_PERMISSIONS = ["read", "write", "admin"]

_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": _ERROR_CODES.get(status_code, "ERROR"),
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }
    )


class RestAPIServer:
    """
    REST API server for the production monitor.

    Provides endpoints for:
    - Liveness and status snapshot
    - Metrics retrieval
    - Alert listing, acknowledgment and resolution
    - Incident listing
    - Remediation history
    - Masked configuration (admin only)
    """

    def __init__(self, session, config: Optional[ApiConfig] = None, config_manager=None):
        """
        Initialize REST API server.

        Args:
            session: MonitoringSession to expose
            config: API configuration
            config_manager: ConfigManager used for the masked configuration view
        """
        self.session = session
        self.config = config or ApiConfig()
        self.config_manager = config_manager
        self.started_at = time.monotonic()

        self.app = FastAPI(
            title="Production Monitor API",
            description="REST API for the production health monitor",
            version=__version__,
            docs_url="/docs" if self.config.debug else None,
            redoc_url="/redoc" if self.config.debug else None
        )

        self._setup_middleware()
        self._setup_routes()
        self._setup_error_handlers()

        self.server: Optional[uvicorn.Server] = None

        logger.info("RestAPIServer initialized",
                    host=self.config.host,
                    port=self.config.port,
                    auth_enabled=self.config.auth_enabled)

    async def start(self) -> None:
        """Serve the API until stop() is called."""
        logger.info("Starting REST API server", host=self.config.host, port=self.config.port)

        server_config = uvicorn.Config(
            app=self.app,
            host=self.config.host,
            port=self.config.port,
            log_level="info" if self.config.debug else "warning",
            access_log=self.config.debug
        )
        self.server = uvicorn.Server(server_config)
        await self.server.serve()

    async def stop(self) -> None:
        if self.server:
            logger.info("Stopping REST API server")
            self.server.should_exit = True
            await asyncio.sleep(0.1)

    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=list(self.config.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def log_requests(request: Request, call_next):
            start_time = time.time()
            response = await call_next(request)
            process_time = time.time() - start_time

            logger.info("API request",
                        method=request.method,
                        url=str(request.url),
                        status_code=response.status_code,
                        process_time=f"{process_time:.3f}s")
            return response

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(StarletteHTTPException)
        async def http_error_handler(request: Request, exc: StarletteHTTPException):
            return error_response(exc.status_code, str(exc.detail))

        @self.app.exception_handler(Exception)
        async def internal_error_handler(request: Request, exc: Exception):
            logger.error("Internal server error", path=request.url.path, error=str(exc))
            return error_response(500, "Internal server error")

    def _setup_routes(self) -> None:
        security = HTTPBearer(auto_error=False)

        def get_current_user(
                credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Dict[str, Any]:
            if not self.config.auth_enabled:
                return {"user": "anonymous", "permissions": ALL_PERMISSIONS}

            if credentials is None:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                                    detail="Missing authentication token")

            for token_config in self.config.tokens:
                if token_config.get('token') == credentials.credentials:
                    return {
                        "user": token_config.get('user', 'api_user'),
                        "permissions": token_config.get('permissions', ['read'])
                    }

            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                                detail="Invalid authentication token")

        def require(permission: str, user: Dict[str, Any]) -> None:
            if permission not in user["permissions"]:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                                    detail=f"{permission.capitalize()} permission required")

        @self.app.get("/api/health")
        async def health_check():
            """Liveness probe for the monitor itself."""
            return {
                "status": "healthy",
                "version": __version__,
                "monitoring": bool(self.session.running),
                "uptime_seconds": round(time.monotonic() - self.started_at, 1),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/api/status")
        async def get_status(user=Depends(get_current_user)):
            require("read", user)
            return self.session.get_status()

        @self.app.get("/api/metrics")
        async def get_metrics(user=Depends(get_current_user)):
            require("read", user)
            return {
                "metrics": self.session.get_metrics(),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/api/alerts")
        async def list_alerts(
            severity: Optional[str] = None,
            include_resolved: bool = True,
            limit: int = 100,
            offset: int = 0,
            user=Depends(get_current_user)
        ):
            """List alerts, newest first, with optional filtering."""
            require("read", user)
            if limit < 0 or offset < 0:
                raise HTTPException(status_code=400, detail="limit and offset must be non-negative")

            severity_filter = None
            if severity:
                try:
                    severity_filter = AlertSeverity(severity)
                except ValueError:
                    raise HTTPException(status_code=400, detail=f"Unknown severity: {severity}")

            alerts = self.session.list_alerts(severity=severity_filter,
                                              include_resolved=include_resolved)
            alerts.reverse()
            total_count = len(alerts)
            page = alerts[offset:offset + limit]

            return {
                "alerts": [alert.to_dict() for alert in page],
                "total_count": total_count,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total_count
            }

        @self.app.post("/api/alerts/{alert_id}/acknowledge")
        async def acknowledge_alert(alert_id: str, user=Depends(get_current_user)):
            require("write", user)
            if not self.session.acknowledge_alert(alert_id):
                raise HTTPException(status_code=404, detail="Alert not found")

            logger.info("Alert acknowledged via API", alert_id=alert_id, user=user["user"])
            return {
                "status": "acknowledged",
                "acknowledged_by": user["user"],
                "acknowledged_at": datetime.now(timezone.utc).isoformat()
            }

        @self.app.post("/api/alerts/{alert_id}/resolve")
        async def resolve_alert(alert_id: str, user=Depends(get_current_user)):
            require("write", user)
            if not self.session.resolve_alert(alert_id):
                raise HTTPException(status_code=404, detail="Alert not found")

            logger.info("Alert resolved via API", alert_id=alert_id, user=user["user"])
            return {
                "status": "resolved",
                "resolved_by": user["user"],
                "resolved_at": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/api/incidents")
        async def list_incidents(status: Optional[str] = None, user=Depends(get_current_user)):
            require("read", user)
            status_filter = None
            if status:
                try:
                    status_filter = IncidentStatus(status)
                except ValueError:
                    raise HTTPException(status_code=400, detail=f"Unknown incident status: {status}")

            incidents = self.session.list_incidents(status=status_filter)
            return {
                "incidents": [incident.to_dict() for incident in incidents],
                "total_count": len(incidents)
            }

        @self.app.get("/api/remediation/history")
        async def remediation_history(limit: Optional[int] = None, user=Depends(get_current_user)):
            require("read", user)
            attempts = self.session.remediation_history(limit)
            return {"history": [attempt.to_dict() for attempt in attempts]}

        @self.app.get("/api/config")
        async def get_configuration(user=Depends(get_current_user)):
            """Current configuration with sensitive values masked."""
            require("admin", user)
            if self.config_manager is None:
                raise HTTPException(status_code=404, detail="Configuration not available")
            return self.config_manager.get_masked_config()
