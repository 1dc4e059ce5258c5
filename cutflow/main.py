import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cutflow.config import settings
from cutflow.database import create_db_and_tables
from cutflow.jobs.order_expiry import run_maintenance
from cutflow.realtime import websocket
from cutflow.realtime.hub import ConnectionHub
from cutflow.routes import (
    health,
    invoices,
    notifications,
    orders,
    payments,
    wallet,
    youtube,
)
from cutflow.services.errors import CutflowError
from cutflow.services.notification_service import NotificationService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _maintenance_loop(notifier: NotificationService, interval: int):
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(run_maintenance, notifier)
        except Exception:
            logger.exception("Maintenance run failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.ENV == "local":
        create_db_and_tables()

    task = None
    if settings.maintenance_interval_seconds > 0:
        task = asyncio.create_task(
            _maintenance_loop(app.state.notifier, settings.maintenance_interval_seconds)
        )

    yield

    if task:
        task.cancel()


app = FastAPI(title="Cutflow API", lifespan=lifespan)

app.state.hub = ConnectionHub()
app.state.notifier = NotificationService(app.state.hub)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CutflowError)
async def cutflow_error_handler(request: Request, exc: CutflowError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(wallet.router, prefix="/api/wallet", tags=["Wallet"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(invoices.router, prefix="/api/invoices", tags=["Invoices"])
app.include_router(youtube.router, prefix="/api/youtube", tags=["YouTube"])
app.include_router(health.router, tags=["Health"])
app.include_router(websocket.router)


@app.get("/")
def root():
    return {
        "order_endpoints": [
            "/api/orders", "/api/orders/{order_id}", "/api/orders/{order_id}/apply",
            "/api/orders/{order_id}/applications",
        ],
        "payment_endpoints": [
            "/api/payments/create-order", "/api/payments/verify",
            "/api/payments/editor-deposit/create", "/api/payments/editor-deposit/verify",
            "/api/payments/webhook", "/api/payments/stripe/webhook",
        ],
        "wallet": ["/api/wallet"],
        "notifications": ["/api/notifications", "/ws"],
        "invoices": ["/api/invoices/order/{order_id}"],
        "youtube": ["/api/youtube/status", "/api/youtube/auth-url", "/api/youtube/callback"],
    }
