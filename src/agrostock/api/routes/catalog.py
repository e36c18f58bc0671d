from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from agrostock.api.deps import get_db, pagination_params
from agrostock.models.base import Product, ProductVariant, utcnow
from agrostock.schemas.catalog import ProductCreate, ProductRead, ProductUpdate, VariantPayload

router = APIRouter(prefix="/products", tags=["products"])


def _get_product(db: Session, product_id: str) -> Product:
    product = db.exec(select(Product).where(Product.product_id == product_id)).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _to_read(db: Session, product: Product) -> ProductRead:
    variants = db.exec(
        select(ProductVariant).where(ProductVariant.product_id == product.product_id).order_by(ProductVariant.id)
    ).all()
    return ProductRead(
        id=product.id,
        product_id=product.product_id,
        name=product.name,
        category=product.category,
        unit=product.unit,
        price=product.price,
        weight=product.weight,
        stock_quantity=product.stock_quantity,
        created_at=product.created_at,
        updated_at=product.updated_at,
        variants=[
            VariantPayload(
                variant_id=variant.variant_id,
                size=variant.size,
                sku=variant.sku,
                price=variant.price,
                weight=variant.weight,
            )
            for variant in variants
        ],
    )


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)) -> ProductRead:
    existing = db.exec(select(Product).where(Product.product_id == payload.product_id)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Product already exists")

    variant_ids = [variant.variant_id for variant in payload.variants]
    if len(set(variant_ids)) != len(variant_ids):
        raise HTTPException(status_code=400, detail="Duplicate variant ids")
    if variant_ids:
        taken = db.exec(select(ProductVariant).where(ProductVariant.variant_id.in_(variant_ids))).first()  # type: ignore[attr-defined]
        if taken:
            raise HTTPException(status_code=400, detail=f"Variant {taken.variant_id} already exists")

    product = Product(**payload.model_dump(exclude={"variants"}))
    db.add(product)
    db.flush()
    for variant in payload.variants:
        db.add(ProductVariant(product_id=product.product_id, **variant.model_dump()))
    db.commit()
    db.refresh(product)
    return _to_read(db, product)


@router.get("", response_model=list[ProductRead])
def list_products(
    category: str | None = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[ProductRead]:
    limit, offset = pagination
    query = select(Product)
    if category:
        query = query.where(Product.category == category)
    query = query.order_by(Product.id).offset(offset).limit(limit)
    return [_to_read(db, product) for product in db.exec(query).all()]


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: str, db: Session = Depends(get_db)) -> ProductRead:
    return _to_read(db, _get_product(db, product_id))


@router.patch("/{product_id}", response_model=ProductRead)
def update_product(product_id: str, payload: ProductUpdate, db: Session = Depends(get_db)) -> ProductRead:
    product = _get_product(db, product_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, key, value)
    product.updated_at = utcnow()
    db.add(product)
    db.commit()
    db.refresh(product)
    return _to_read(db, product)
