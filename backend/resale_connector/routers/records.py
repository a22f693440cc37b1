import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Session, contains_eager

from resale_connector.database import get_db
from resale_connector.db_models import EbayListing, Item, Sale
from resale_connector.routers.deps import get_current_user_id

router = APIRouter(prefix="/api", tags=["records"])

SALE_SORT_COLUMNS = {
    "sale_date": Sale.sale_date,
    "sale_price": Sale.sale_price,
    "net_profit": Sale.net_profit,
    "created_at": Sale.created_at,
}


def _money(value):
    return float(value) if value is not None else None


def _sale_to_dict(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "item_number": sale.item.item_number,
        "description": sale.item.description,
        "listed_date": sale.listed_date.isoformat() if sale.listed_date else None,
        "sale_date": sale.sale_date.isoformat() if sale.sale_date else None,
        "offer_start_date": sale.offer_start_date.isoformat() if sale.offer_start_date else None,
        "offer_expiration_date": sale.offer_expiration_date.isoformat() if sale.offer_expiration_date else None,
        "listed_price": _money(sale.listed_price),
        "sale_price": _money(sale.sale_price),
        "shipping_cost": _money(sale.shipping_cost),
        "supplies_cost": _money(sale.supplies_cost),
        "net_profit": _money(sale.net_profit),
    }


@router.get("/sales")
async def list_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    search: str = Query(""),
    sort_by: str = Query("sale_date", pattern="^(sale_date|sale_price|net_profit|created_at)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Imported sales, newest first by default; ``search`` matches item number or description."""
    query = db.query(Sale).join(Sale.item).filter(Sale.user_id == user_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Item.description.ilike(pattern), Item.item_number.ilike(pattern)))

    total = query.count()

    order_col = SALE_SORT_COLUMNS[sort_by]
    query = query.order_by(desc(order_col) if sort_order == "desc" else asc(order_col), Sale.id)
    sales = query.options(contains_eager(Sale.item)).offset((page - 1) * limit).limit(limit).all()

    return {
        "sales": [_sale_to_dict(s) for s in sales],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.get("/listings")
async def list_listings(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    listings = (
        db.query(EbayListing)
        .filter(EbayListing.user_id == user_id)
        .order_by(desc(EbayListing.created_at), EbayListing.listing_id)
        .all()
    )
    return {
        "listings": [
            {
                "listing_id": listing.listing_id,
                "sku": listing.sku,
                "title": listing.title,
                "current_price": _money(listing.current_price),
                "original_price": _money(listing.original_price),
                "quantity_available": listing.quantity_available,
                "status": listing.status,
                "updated_at": listing.updated_at.isoformat() if listing.updated_at else None,
            }
            for listing in listings
        ]
    }
