# billtracker/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import CORS_ORIGINS, DEBUG_MODE, DOCS_ENABLED, LOG_LEVEL
from .db import BillStore
from .errors import NotFoundError, PoolExhaustedError, StoreError, ValidationError
from .models import Bill, BillIn, PayIn, UpdateIn
from .service import BillService

# Logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("billtracker")

TITLE = "Bill Tracker"


def get_service(request: Request) -> BillService:
    return request.app.state.service


def create_app(store: Optional[BillStore] = None) -> FastAPI:
    store = store or BillStore.open()
    service = BillService(store)

    # ----------------------------
    # Lifecycle
    # ----------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init_db()
        logger.info(
            "Bill Tracker startup: DB_PATH=%s pool_max=%s",
            store.pool.db_path,
            store.pool.max_size,
        )
        yield
        store.close()
        logger.info("Bill Tracker shutdown: pool closed")

    app = FastAPI(
        title=TITLE,
        version="0.1.0",
        docs_url="/docs" if DOCS_ENABLED else None,
        redoc_url=None,
        openapi_url="/openapi.json" if DOCS_ENABLED else None,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS
    methods = ["GET", "POST", "PATCH", "DELETE"]
    if CORS_ORIGINS:
        # Credentials + explicit origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=CORS_ORIGINS,
            allow_methods=methods,
            allow_headers=["*"],
            allow_credentials=True,
        )
    else:
        # No credentials when wildcard origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=methods,
            allow_headers=["*"],
            allow_credentials=False,
        )

    # ----------------------------
    # Error mapping
    # ----------------------------
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "fields": exc.fields})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            loc = err.get("loc") or ()
            name = str(loc[-1]) if loc else "body"
            if name not in fields:
                fields.append(name)
        return JSONResponse(status_code=400, content={"detail": "Invalid request", "fields": fields})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        status = 503 if isinstance(exc, PoolExhaustedError) else 500
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": "Bill store unavailable"})

    # ----------------------------
    # Health
    # ----------------------------
    @app.get("/", summary="Health (root)")
    def root_health():
        payload = {
            "ok": True,
            "service": app.title,
            "time": datetime.utcnow().isoformat(),
        }
        if DEBUG_MODE:
            payload["db_path"] = store.pool.db_path
        return payload

    @app.get("/health", summary="Health")
    def health():
        # Alias for convenience
        return root_health()

    # ----------------------------
    # Bills
    # ----------------------------
    @app.get("/bills", response_model=List[Bill], summary="List bills")
    def get_bills(
        status: Optional[str] = Query(None, pattern="^(unpaid|partial|paid)$"),
        q: Optional[str] = Query(None, max_length=200),
        svc: BillService = Depends(get_service),
    ):
        return svc.list_bills(status=status, search=q)

    @app.get("/bills/amountPaid/{bill_id}", summary="Amount paid so far on a bill")
    def get_amount_paid(bill_id: str, svc: BillService = Depends(get_service)):
        return {"amountPaid": svc.get_amount_paid(bill_id)}

    @app.get("/bills/{bill_id}", response_model=Bill, summary="Get one bill")
    def get_bill(bill_id: str, svc: BillService = Depends(get_service)):
        return svc.get_bill(bill_id)

    @app.post("/addbill", response_model=Bill, status_code=201, summary="Add a bill")
    def add_bill(body: BillIn, svc: BillService = Depends(get_service)):
        return svc.add_bill(body.bill_from, body.bill_type, body.amount_due, body.due_date)

    @app.patch("/paybill/{bill_id}", response_class=PlainTextResponse, summary="Record a payment")
    def pay_bill(bill_id: str, body: PayIn, svc: BillService = Depends(get_service)):
        return svc.pay_bill(
            bill_id,
            amount_paid=body.amount_paid,
            date_paid=body.date_paid,
            paid_by=body.paid_by,
            amount_due=body.amount_due,
        )

    @app.patch("/updatebill/{bill_id}", response_class=PlainTextResponse, summary="Update a bill")
    def update_bill(bill_id: str, body: UpdateIn, svc: BillService = Depends(get_service)):
        return svc.update_bill(
            bill_id,
            bill_from=body.bill_from,
            bill_type=body.bill_type,
            amount_due=body.amount_due,
            due_date=body.due_date,
            amount_paid=body.amount_paid,
            date_paid=body.date_paid,
            paid_by=body.paid_by,
        )

    @app.delete("/bills/{bill_id}", response_class=PlainTextResponse, summary="Delete a bill")
    def delete_bill(bill_id: str, svc: BillService = Depends(get_service)):
        return svc.delete_bill(bill_id)

    return app


app = create_app()
