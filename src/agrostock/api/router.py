from fastapi import APIRouter

from agrostock.api.routes import catalog, delivery, health, inventory, movement, purchase, warehouse

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(movement.router)
# fixed geo paths must be registered ahead of /warehouses/{warehouse_id}
api_router.include_router(delivery.router)
api_router.include_router(warehouse.router)
api_router.include_router(catalog.router)
api_router.include_router(inventory.router)
api_router.include_router(purchase.router)
