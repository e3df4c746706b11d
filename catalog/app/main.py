import logging
import os
from typing import Optional

from fastapi import FastAPI, APIRouter, HTTPException, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from svckit.db import make_engine, make_sessionmaker
from svckit.errors import install_error_handlers
from svckit.observability import allow_cross_origin, configure_logging, instrument

from .db import DATABASE_URL, get_session, init_db
from .models import Product
from .schemas import ProductEnvelope, ProductIn, ProductList, ProductPatch, ProductSaved

APP_NAME = "catalog"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8080"))

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products")

def _get_or_404(session: Session, pid: int) -> Product:
    p = session.get(Product, pid)
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return p

@router.get("", response_model=ProductList)
def list_products(session: Session = Depends(get_session)):
    rows = session.execute(
        select(Product).order_by(Product.created_at.desc(), Product.id.desc())
    ).scalars().all()
    return {"products": rows}

@router.get("/{pid}", response_model=ProductEnvelope)
def get_product(pid: int, session: Session = Depends(get_session)):
    return {"product": _get_or_404(session, pid)}

@router.post("", response_model=ProductSaved, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductIn, session: Session = Depends(get_session)):
    p = Product(**payload.model_dump())
    session.add(p)
    session.flush()
    session.refresh(p)
    log.info("created product %d (%s)", p.id, p.name)
    return {"message": "Product created successfully", "product": p}

@router.put("/{pid}", response_model=ProductSaved)
def update_product(pid: int, payload: ProductPatch, session: Session = Depends(get_session)):
    changes = payload.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    p = _get_or_404(session, pid)
    for field, value in changes.items():
        setattr(p, field, value)
    session.flush()
    session.refresh(p)
    log.info("updated product %d: %s", p.id, sorted(changes))
    return {"message": "Product updated successfully", "product": p}

@router.delete("/{pid}")
def delete_product(pid: int, session: Session = Depends(get_session)):
    p = _get_or_404(session, pid)
    session.delete(p)
    log.info("deleted product %d", pid)
    return {"message": "Product deleted successfully"}

def create_app(database_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME)
    app.state.engine = make_engine(database_url or DATABASE_URL)
    app.state.sessionmaker = make_sessionmaker(app.state.engine)

    # ---- Startup: ensure tables exist (idempotent) ----
    @app.on_event("startup")
    def on_startup():
        init_db(app.state.engine)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.engine.dispose()

    instrument(app, APP_NAME, "Product Service")
    allow_cross_origin(app)
    install_error_handlers(app, APP_NAME)
    app.include_router(router)
    return app

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=LISTEN_PORT)
