"""Stock listing models and the in-process catalog served by the stock API."""

from pydantic import BaseModel, ConfigDict, Field


class StockItem(BaseModel):
    """One stock line, serialized as ``{"stockId": ..., "description": ...}``."""

    stock_id: int = Field(..., alias="stockId", ge=0)
    description: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class StockResponse(BaseModel):
    """Body of GET /stock."""

    stock: list[StockItem]


class StockCatalog:
    """Read-only stock listing."""

    def __init__(self, items: list[StockItem] | None = None) -> None:
        self._items = list(items) if items is not None else default_stock_items()

    def list_items(self) -> list[StockItem]:
        return list(self._items)


def default_stock_items() -> list[StockItem]:
    return [
        StockItem(stock_id=1, description="Standard widget"),
        StockItem(stock_id=2, description="Premium widget"),
        StockItem(stock_id=3, description="Widget spare parts kit"),
    ]
