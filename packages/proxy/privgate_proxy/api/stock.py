"""Stock API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from privgate_proxy.catalog import StockCatalog, StockResponse
from privgate_proxy.dependencies import get_stock_catalog

router = APIRouter(tags=["stock"])


@router.get("/stock", response_model=StockResponse)
async def list_stock(
    catalog: Annotated[StockCatalog, Depends(get_stock_catalog)],
) -> StockResponse:
    """List stock.

    Only reachable once the request passed the access policy and the usage
    plan middleware.
    """
    return StockResponse(stock=catalog.list_items())
