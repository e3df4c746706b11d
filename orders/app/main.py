import logging
import os
from typing import List, Optional

from fastapi import FastAPI, APIRouter, HTTPException, Depends, Request, status
from sqlalchemy.orm import Session

from svckit.db import make_engine, make_sessionmaker
from svckit.errors import error_response, install_error_handlers
from svckit.observability import allow_cross_origin, configure_logging, instrument

from .clients import ProductCatalog, UserDirectory
from .db import DATABASE_URL, get_session, init_db
from .errors import OrderError, UpstreamError
from .models import Order
from .schemas import (
    EnrichedOrderList, EnrichedOrderOut, OrderCreate, OrderCreated, OrderEnvelope,
    OrderList, OrderOut, OrderStatusUpdate, OrderSummary, OrderUpdated,
)
from .service import OrderService

APP_NAME = "orders"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "3002"))

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders")

def get_order_service(request: Request, session: Session = Depends(get_session)) -> OrderService:
    return OrderService(session, request.app.state.users, request.app.state.products)

def _enrich(service: OrderService, order: Order) -> EnrichedOrderOut:
    data = OrderOut.model_validate(order).model_dump()
    return EnrichedOrderOut(**data, user_name=service.display_name(order.user_id))

# ---------- Endpoints ----------
@router.post("", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    order = service.create_order(payload)
    return {"message": "Order created successfully", "order": OrderOut.model_validate(order)}

@router.get("", response_model=EnrichedOrderList)
def list_orders(service: OrderService = Depends(get_order_service)):
    return {"orders": [_enrich(service, o) for o in service.list_orders()]}

@router.get("/user/{user_id}", response_model=OrderList)
def list_user_orders(user_id: int, service: OrderService = Depends(get_order_service)):
    orders: List[OrderOut] = [OrderOut.model_validate(o) for o in service.orders_for_user(user_id)]
    return {"orders": orders}

@router.get("/{order_id}", response_model=OrderEnvelope)
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    order = service.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"order": _enrich(service, order)}

@router.put("/{order_id}", response_model=OrderUpdated)
def update_order(order_id: int, payload: OrderStatusUpdate,
                 service: OrderService = Depends(get_order_service)):
    order = service.update_status(order_id, payload.status)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order status updated successfully", "order": OrderSummary.model_validate(order)}

@router.delete("/{order_id}")
def delete_order(order_id: int, service: OrderService = Depends(get_order_service)):
    if not service.delete_order(order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order deleted successfully"}

def create_app(database_url: Optional[str] = None,
               users: Optional[UserDirectory] = None,
               products: Optional[ProductCatalog] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME)
    app.state.engine = make_engine(database_url or DATABASE_URL)
    app.state.sessionmaker = make_sessionmaker(app.state.engine)
    app.state.users = users or UserDirectory()
    app.state.products = products or ProductCatalog()

    # Create tables at startup (idempotent)
    @app.on_event("startup")
    def on_startup():
        init_db(app.state.engine)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.users.close()
        app.state.products.close()
        app.state.engine.dispose()

    instrument(app, APP_NAME, "Order Service")
    allow_cross_origin(app)
    install_error_handlers(app, APP_NAME)

    @app.exception_handler(OrderError)
    async def order_rejected(request: Request, exc: OrderError):
        return error_response(400, str(exc))

    @app.exception_handler(UpstreamError)
    async def upstream_failed(request: Request, exc: UpstreamError):
        log.error("Create order error: %s", exc)
        return error_response(500, "Internal server error")

    app.include_router(router)
    return app

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=LISTEN_PORT)
