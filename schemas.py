from datetime import datetime
from typing import List, NewType, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ScanCode = str
ItemId = NewType("ItemId", str)
VariantId = NewType("VariantId", str)


class ProductIdentity(BaseModel):
    """Loyverse identity of a scanned product. Stock is written per variant, never per item."""

    model_config = ConfigDict(frozen=True)

    item_id: ItemId
    variant_id: Optional[VariantId] = None

    @property
    def has_variant(self) -> bool:
        return bool(self.variant_id)


class ResolvedProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: ProductIdentity
    name: str
    category: str = "Unknown"
    remote_stock: int = Field(0, ge=0)
    # False when the stock read could not be completed and remote_stock is a placeholder 0
    stock_known: bool = True


class ScanRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    scan_code: ScanCode
    product: ResolvedProduct
    counted_quantity: int = Field(..., ge=1)
    last_scanned_at: datetime


class ScanSummary(BaseModel):
    product: str
    code: ScanCode
    counted: int
    current_stock: int
    stock_known: bool = True
    difference: int


class SyncedItem(BaseModel):
    code: ScanCode
    counted: int


class SyncFailure(BaseModel):
    code: ScanCode
    error: str


class BatchResult(BaseModel):
    succeeded: List[SyncedItem] = Field(default_factory=list)
    failed: List[SyncFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class ScanQuery(BaseModel):
    barcode: str = Field(
        ...,
        description="Barcode or SKU as scanned",
        validation_alias=AliasChoices("barcode", "code"),
    )


class ScanResponse(BaseModel):
    success: bool = True
    product: str
    barcode: str
    counted: int
    currentStock: int
    stockKnown: bool
    difference: int


class ScannedItem(BaseModel):
    barcode: str
    product_name: str
    category_name: str
    item_id: str
    variant_id: Optional[str] = None
    stock: int
    stock_known: bool
    counted: int
    lastScanned: datetime
