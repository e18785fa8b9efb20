from typing import Optional

from sqlalchemy.orm import Session

from ceramisys.models import Product, ProductPrice, Stock


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str) -> Optional[Product]:
    return db.query(Product).filter(Product.sku == sku).first()


def get_stock(db: Session, company_id: int, product_id: int) -> Optional[Stock]:
    return db.query(Stock).filter(
        Stock.company_id == company_id,
        Stock.product_id == product_id,
    ).first()


def get_price(db: Session, company_id: int, product_id: int) -> Optional[ProductPrice]:
    return db.query(ProductPrice).filter(
        ProductPrice.company_id == company_id,
        ProductPrice.product_id == product_id,
    ).first()
