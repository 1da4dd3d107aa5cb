"""
Catalog routes

Listings never fail on catalog outages: they come back empty with
`unavailable: true` and a retry message. Single-product lookups do raise.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from storefront.api.deps import get_catalog_service
from storefront.schemas.product import ProductView
from storefront.services.catalog_service import CatalogResult, CatalogService, build_product_view
from storefront.services.whatsapp import build_consult_link, build_consult_message

router = APIRouter()
categories_router = APIRouter()


class ConsultLinkResponse(BaseModel):
    product_id: str
    message: str
    url: str


@router.get("", response_model=CatalogResult)
async def list_products(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    service: CatalogService = Depends(get_catalog_service),
):
    """
    Product listing.

    - `search` wins over the category filters
    - `subcategory` requires `category`
    """
    if search is not None:
        return await service.search(search)
    if subcategory:
        if not category:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="subcategory filter requires a category",
            )
        return await service.list_subcategory(category, subcategory)
    if category:
        return await service.list_category(category)
    return await service.list_all()


@router.get("/{product_id}", response_model=ProductView)
async def get_product(
    product_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    product = await service.get_product(product_id)
    return build_product_view(product)


@router.get("/{product_id}/whatsapp", response_model=ConsultLinkResponse)
async def get_consult_link(
    product_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    product = await service.get_product(product_id)
    return ConsultLinkResponse(
        product_id=product.id,
        message=build_consult_message(product),
        url=build_consult_link(product),
    )


@categories_router.get("", response_model=List[str])
async def list_categories(service: CatalogService = Depends(get_catalog_service)):
    return await service.categories()


@categories_router.get("/{category}/subcategories", response_model=List[str])
async def list_subcategories(
    category: str,
    service: CatalogService = Depends(get_catalog_service),
):
    return await service.subcategories(category)
