from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import json
import logging
import uuid
from datetime import datetime, timezone

from safetrail import __version__
from safetrail.api import alerts, geofences, monitoring
from safetrail.config import settings
from safetrail.core.dispatcher import AlertDispatcher, AlertHistory
from safetrail.core.geofence_store import InMemoryGeofenceStore, SQLGeofenceStore
from safetrail.core.history_store import InMemoryAlertHistoryStore, SQLAlertHistoryStore
from safetrail.core.supervisor import MonitoringSupervisor
from safetrail.database import create_db_and_tables
from safetrail.errors import StorageError
from safetrail.models.alert import Alert
from safetrail.utils.location_source import PushLocationSource

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# WebSocket connection manager
class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, client_id: str):
        await websocket.accept()
        self.active_connections[client_id] = websocket
        logger.info(f"WebSocket connected: {client_id}")

    def disconnect(self, client_id: str):
        if client_id in self.active_connections:
            del self.active_connections[client_id]
            logger.info(f"WebSocket disconnected: {client_id}")

    async def broadcast(self, data: Dict[str, Any]):
        disconnected = []
        for client_id, websocket in list(self.active_connections.items()):
            try:
                await websocket.send_text(json.dumps(data, default=str))
            except Exception as e:
                logger.warning(f"Error broadcasting to {client_id}: {e}")
                disconnected.append(client_id)

        # Clean up disconnected clients
        for client_id in disconnected:
            self.disconnect(client_id)

    async def broadcast_alert(self, alert: Alert):
        await self.broadcast({"type": "alert", "alert": alert.to_dict()})

def build_supervisor() -> MonitoringSupervisor:
    """Wire the engine from settings"""
    if settings.GEOFENCE_STORE == "memory":
        geofence_store = InMemoryGeofenceStore()
    else:
        geofence_store = SQLGeofenceStore()

    if settings.ALERT_HISTORY_STORE == "memory":
        history_store = InMemoryAlertHistoryStore()
    else:
        history_store = SQLAlertHistoryStore()

    return MonitoringSupervisor(
        location_source=PushLocationSource(),
        geofence_store=geofence_store,
        dispatcher=AlertDispatcher(history=AlertHistory(store=history_store))
    )

def create_app(supervisor: Optional[MonitoringSupervisor] = None) -> FastAPI:
    manager = ConnectionManager()

    # Lifespan manager for startup/shutdown events
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        engine = supervisor or build_supervisor()
        if (
            isinstance(engine.geofence_store, SQLGeofenceStore)
            or isinstance(engine.dispatcher.history.store, SQLAlertHistoryStore)
        ):
            await create_db_and_tables()
            logger.info("Database tables created")

        try:
            await engine.dispatcher.load_history()
        except StorageError as e:
            logger.error(f"Starting with empty alert history: {e}")

        remove_listener = engine.dispatcher.add_listener(manager.broadcast_alert)
        app.state.supervisor = engine
        logger.info("SafeTrail engine starting up")
        yield
        # Shutdown
        remove_listener()
        engine.panic_trigger.cancel()
        await engine.stop()
        await engine.dispatcher.drain()
        logger.info("SafeTrail engine shutting down")

    app = FastAPI(
        title="SafeTrail Monitoring API",
        description="Device-local control surface for the personal safety monitoring engine",
        version=__version__,
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(monitoring.router, prefix="/api/monitoring", tags=["Monitoring"])
    app.include_router(geofences.router, prefix="/api/geofences", tags=["Geofences"])
    app.include_router(alerts.router, prefix="/api/alerts", tags=["Alerts"])

    @app.websocket("/ws/alerts")
    async def alerts_websocket(websocket: WebSocket):
        client_id = uuid.uuid4().hex
        await manager.connect(websocket, client_id)
        try:
            while True:
                # Keep connection alive; any message is answered with a heartbeat
                await websocket.receive_text()
                await websocket.send_text(json.dumps({
                    "type": "heartbeat",
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }))
        except WebSocketDisconnect:
            manager.disconnect(client_id)

    @app.get("/")
    async def root():
        return {
            "message": "SafeTrail Monitoring API",
            "status": "active",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        engine: MonitoringSupervisor = app.state.supervisor
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "monitoring_active": engine.is_active,
            "pending_deliveries": engine.dispatcher.pending_deliveries,
            "active_connections": len(manager.active_connections)
        }

    app.state.websocket_manager = manager
    return app

app = create_app()
