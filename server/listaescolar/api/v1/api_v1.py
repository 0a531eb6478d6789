from fastapi import APIRouter

from listaescolar.api.v1 import admin, geocode, links, schools, store_carts

router = APIRouter()

router.include_router(links.router)
router.include_router(store_carts.router)
router.include_router(geocode.router)
router.include_router(schools.router, prefix="/schools")
router.include_router(admin.router, prefix="/admin")
