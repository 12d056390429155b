"""
FastAPI Application - Funding Spread Monitor API

Ranks perpetual-futures funding-rate spreads across exchanges and schedules
per-subscriber alerts ahead of funding settlement.

Supported Exchanges:
    - Binance Futures (USD-M)
    - Bybit (linear)
    - KuCoin Futures
    - Gate.io (USDT futures)
    - Bitget (USDT-M)
    - MEXC (contracts)

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from core.config import settings, validate_configuration
from core.exceptions import ExchangeNotFoundError
from core.exchange_manager import ExchangeManager
from core.logging import logger
from core.schemas import AssetSpread, MoverPolicy, NotificationPolicy, PrecisePolicy
from services.alert_bus import BusDelivery, bus, subscriber_topic
from services.formatting import render_report
from services.funding_aggregator import FundingAggregator
from services.notifier import NotificationScheduler
from services.price_movers import PriceMoverFeed


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await manager.initialize_all()
        await movers.initialize()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    try:
        await scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error stopping notification scheduler: {e}")
    try:
        await movers.shutdown()
        await manager.shutdown_all()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Funding Spread Monitor API",
    description=(
        "Cross-exchange perpetual funding-rate spreads and pre-settlement alerts.\n\n"
        "## REST Endpoints\n"
        "- `GET /spreads?top=N` - Top N funding spreads (JSON)\n"
        "- `GET /report?top=N` - Top N funding spreads (plain text)\n"
        "- `POST /subscribers/{id}/report?top=N` - Send a report to a subscriber\n"
        "- `POST /subscribers/{id}/notifications` - Start recurring-poll alerts\n"
        "- `DELETE /subscribers/{id}/notifications` - Stop alerts\n"
        "- `POST /subscribers/{id}/precise-notifications` - Enable pre-settlement alerts\n"
        "- `DELETE /subscribers/{id}/precise-notifications` - Disable pre-settlement alerts\n"
        "- `POST /subscribers/{id}/price-alerts` - Start 24h price-mover alerts\n"
        "- `DELETE /subscribers/{id}/price-alerts` - Stop price-mover alerts\n"
        "- `GET /subscribers/{id}` - Current alert policy\n"
        "- `GET /health` - Health check\n\n"
        "## WebSocket Streams\n"
        "- `ws://{host}/ws/alerts/{id}` - Alerts and reports for one subscriber\n\n"
        "All WebSocket messages are JSON objects. Clients should handle reconnects on disconnect."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

manager = ExchangeManager()  # Global exchange manager
aggregator = FundingAggregator(manager)
movers = PriceMoverFeed()
scheduler = NotificationScheduler(aggregator, BusDelivery(bus), movers=movers)

USAGE_HINTS = {
    "notifications": "Usage: POST {\"window_minutes\": 30, \"threshold_pct\": 1.0, \"poll_interval_minutes\": 60}",
    "precise-notifications": "Usage: POST {\"threshold_pct\": 1.0, \"window_minutes\": 30} (body optional)",
    "price-alerts": "Usage: POST {\"threshold_pct\": 40.0, \"interval_seconds\": 60} (threshold optional)",
    "spreads": "Usage: ?top=N with N between 1 and 100",
    "report": "Usage: ?top=N with N between 1 and 100",
}


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and aggregated exchanges."""
    return {
        "name": "Funding Spread Monitor API",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment,
        "docs": "/docs",
        "exchanges": manager.list_exchanges()
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Exchanges and the outcome of the last aggregation round."""
    last_round = {name: vars(status) for name, status in aggregator.last_round.items()}
    degraded = any(status["status"] != "ok" for status in last_round.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "exchanges": manager.list_exchanges(),
        "last_round": last_round,
        "last_round_at": aggregator.last_round_at,
        "subscribers": len(scheduler.store)
    }


@app.get("/exchanges/{exchange}", tags=["System"])
async def get_exchange_info(exchange: str):
    """Configuration of one aggregated exchange."""
    connector = manager.get_exchange(exchange)
    return {
        "name": connector.name,
        "url": connector.url,
        "settlement_offset_hours": connector.settlement_offset_hours
    }


# ============================================
# Funding Spreads
# ============================================

@app.get("/spreads", response_model=List[AssetSpread], tags=["Funding"])
async def get_spreads(
    top: int = Query(default=settings.default_report_top, ge=1, le=100, description="Number of spreads")
):
    """
    Largest cross-exchange funding spreads, widest first.

    Example:
        GET /spreads?top=5
    """
    return await aggregator.top_spreads(top)


@app.get("/report", response_class=PlainTextResponse, tags=["Funding"])
async def get_report(
    top: int = Query(default=settings.default_report_top, ge=1, le=100, description="Number of spreads")
):
    """Largest funding spreads rendered as plain text."""
    spreads = await aggregator.top_spreads(top)
    return render_report(spreads)


# ============================================
# Subscriber Endpoints
# ============================================

@app.post("/subscribers/{subscriber_id}/report", response_class=PlainTextResponse, tags=["Subscribers"])
async def send_report(
    subscriber_id: str,
    top: int = Query(default=settings.default_report_top, ge=1, le=100, description="Number of spreads")
):
    """Render the current report and deliver it to the subscriber."""
    return await scheduler.send_report(subscriber_id, top)


@app.post("/subscribers/{subscriber_id}/notifications", tags=["Subscribers"])
async def start_notifications(subscriber_id: str, policy: NotificationPolicy):
    """Start recurring-poll alerts, replacing any previous alert policy."""
    scheduler.start_notifications(subscriber_id, policy)
    return scheduler.describe(subscriber_id)


@app.delete("/subscribers/{subscriber_id}/notifications", tags=["Subscribers"])
async def stop_notifications(subscriber_id: str):
    """Stop all alerts of the subscriber. Safe to repeat."""
    return {"subscriber_id": subscriber_id, "stopped": scheduler.stop_notifications(subscriber_id)}


@app.post("/subscribers/{subscriber_id}/precise-notifications", tags=["Subscribers"])
async def enable_precise(subscriber_id: str, policy: Optional[PrecisePolicy] = Body(default=None)):
    """Enable pre-settlement alerts, replacing any previous alert policy."""
    scheduler.enable_precise(subscriber_id, policy)
    return scheduler.describe(subscriber_id)


@app.delete("/subscribers/{subscriber_id}/precise-notifications", tags=["Subscribers"])
async def disable_precise(subscriber_id: str):
    """Disable pre-settlement alerts. Safe to repeat."""
    return {"subscriber_id": subscriber_id, "stopped": scheduler.disable_precise(subscriber_id)}


@app.post("/subscribers/{subscriber_id}/price-alerts", tags=["Subscribers"])
async def start_price_alerts(subscriber_id: str, policy: MoverPolicy):
    """Start 24h price-mover alerts, replacing any previous alert policy."""
    scheduler.start_price_alerts(subscriber_id, policy)
    return scheduler.describe(subscriber_id)


@app.delete("/subscribers/{subscriber_id}/price-alerts", tags=["Subscribers"])
async def stop_price_alerts(subscriber_id: str):
    """Stop price-mover alerts. Safe to repeat."""
    return {"subscriber_id": subscriber_id, "stopped": scheduler.stop_price_alerts(subscriber_id)}


@app.get("/subscribers/{subscriber_id}", tags=["Subscribers"])
async def get_subscriber(subscriber_id: str):
    """Current alert policy and live timers of the subscriber."""
    info = scheduler.describe(subscriber_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"No active alerts for subscriber '{subscriber_id}'")
    return info


# ============================================
# WebSocket Endpoints
# ============================================

@app.websocket("/ws/alerts/{subscriber_id}")
async def websocket_alerts(websocket: WebSocket, subscriber_id: str):
    """
    Alert and report stream of one subscriber.

    Example:
        ws://localhost:8000/ws/alerts/alice
    """
    await websocket.accept()
    logger.info(f"WS connected: alerts/{subscriber_id}")
    topic = subscriber_topic(subscriber_id)
    queue = bus.subscribe(topic)

    async def forward_events():
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    forward_task = asyncio.create_task(forward_events(), name=f"ws_alerts_{subscriber_id}")
    try:
        await websocket.send_json({"type": "subscribed", "subscriber_id": subscriber_id})
        # Client messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"WS disconnected: alerts/{subscriber_id}")
    except Exception as e:
        logger.error(f"WS error alerts/{subscriber_id}: {e}")
    finally:
        forward_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await forward_task
        bus.unsubscribe(topic, queue)
        logger.info(f"WS ended: alerts/{subscriber_id}")


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Reject malformed input with a one-line usage hint."""
    last_segment = request.url.path.rstrip("/").rsplit("/", 1)[-1]
    usage = USAGE_HINTS.get(last_segment, "Usage: see /docs")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "usage": usage},
    )


@app.exception_handler(ExchangeNotFoundError)
async def exchange_not_found_handler(request: Request, exc: ExchangeNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
