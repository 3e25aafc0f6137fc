# Overview: Service-layer operations for the product/variant catalog and stock levels.

"""
Catalog Store

WHY: Products and their sellable variants own the stock levels the ledger
draws down on sale and restores on return.

DESIGN PRINCIPLES:
- The catalog owns Product/Variant records; the ledger only calls
  find_variant() and adjust_stock()
- A product's variants are replaced as a set on update
- Deleting a product deletes its variants; past sales keep their snapshots
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..entities import Attribute, Product, Variant
from ..errors import NotFoundError, ValidationError
from ..state import LedgerState
from ..validation import clean_text, parse_money
from .concurrency import lock_for_update


def new_id() -> str:
    return str(uuid.uuid4())


def _list_field(payload: Mapping[str, Any], field: str) -> list:
    value = payload.get(field) or []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    return list(value)


def _build_attribute(raw: Any, index: int) -> Attribute:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"attributes[{index}] must be an object")
    values = raw.get("values") or []
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"attributes[{index}].values must be a list")
    return Attribute(
        name=clean_text(raw.get("name"), f"attributes[{index}].name", max_length=64, required=True),
        values=tuple(str(v) for v in values),
    )


class CatalogService:
    def __init__(self, state: LedgerState):
        self.state = state

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def add_product(self, product: Product, variants: Iterable[Variant] = ()) -> Product:
        variants = list(variants)
        with lock_for_update(self.state):
            if self.state.get("products", product.id):
                raise ValidationError(f"Product '{product.id}' already exists")
            self._check_variants(product.id, variants)
            self.state.put("products", product)
            for variant in variants:
                self.state.put("variants", variant)
        return product

    def update_product(self, product: Product, variants: Iterable[Variant]) -> Product:
        """Overwrite a product and replace its whole variant set."""
        variants = list(variants)
        with lock_for_update(self.state):
            if not self.state.get("products", product.id):
                raise NotFoundError("Product not found")
            self._check_variants(product.id, variants)
            keep = {v.id for v in variants}
            for old in self.variants_for_product(product.id):
                if old.id not in keep:
                    self.state.remove("variants", old.id)
            self.state.put("products", product)
            for variant in variants:
                self.state.put("variants", variant)
        return product

    def delete_product(self, product_id: str) -> Product:
        with lock_for_update(self.state):
            product = self.state.get("products", product_id)
            if not product:
                raise NotFoundError("Product not found")
            for variant in self.variants_for_product(product_id):
                self.state.remove("variants", variant.id)
            self.state.remove("products", product_id)
        return product

    def delete_variant(self, variant_id: str) -> Variant:
        with lock_for_update(self.state):
            variant = self.state.get("variants", variant_id)
            if not variant:
                raise NotFoundError("Variant not found")
            self.state.remove("variants", variant_id)
        return variant

    def _check_variants(self, product_id: str, variants: list[Variant]) -> None:
        seen_codes: set[str] = set()
        for variant in variants:
            if variant.product_id != product_id:
                raise ValidationError(f"Variant '{variant.id}' belongs to another product")
            if variant.stock < 0:
                raise ValidationError(f"Variant '{variant.sku}' stock must be >= 0")
            if variant.price < 0:
                raise ValidationError(f"Variant '{variant.sku}' price must be >= 0")
            for code in (variant.sku, variant.barcode):
                if not code:
                    continue
                if code in seen_codes:
                    raise ValidationError(f"Duplicate code '{code}' in variants")
                seen_codes.add(code)
                clash = self.find_variant_by_code(code)
                # the product's own variant set is being replaced
                if clash and clash.id != variant.id and clash.product_id != product_id:
                    raise ValidationError(f"Code '{code}' already used by variant '{clash.id}'")

    def build_product(self, payload: dict) -> tuple[Product, list[Variant]]:
        """
        Build entities from an API/CLI payload.

        Payload:
        {
            "id": "optional",
            "name": "Shirt", "description": "", "category": "Clothing",
            "base_price": "20.00",
            "attributes": [{"name": "Size", "values": ["S", "M"]}],
            "variants": [{"sku": "SH-S", "barcode": "123", "price": "20.00",
                          "stock": 5, "attribute_values": {"Size": "S"}}]
        }
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Product payload must be an object")

        product_id = str(payload.get("id") or new_id())
        base_price = parse_money(payload.get("base_price", 0), "base_price")
        product = Product(
            id=product_id,
            name=clean_text(payload.get("name"), "name", max_length=128, required=True),
            description=clean_text(payload.get("description"), "description", max_length=1000),
            category=clean_text(payload.get("category"), "category", max_length=64),
            base_price=base_price,
            attributes=tuple(
                _build_attribute(raw, i) for i, raw in enumerate(_list_field(payload, "attributes"))
            ),
        )

        variants = []
        for i, raw in enumerate(_list_field(payload, "variants")):
            if not isinstance(raw, Mapping):
                raise ValidationError(f"variants[{i}] must be an object")
            values = raw.get("attribute_values") or {}
            if not isinstance(values, Mapping):
                raise ValidationError(f"variants[{i}].attribute_values must be an object")
            values = {str(k): str(v) for k, v in values.items()}
            stock = raw.get("stock", 0)
            if isinstance(stock, bool) or not isinstance(stock, int):
                raise ValidationError("stock must be an integer")
            variants.append(Variant(
                id=str(raw.get("id") or new_id()),
                product_id=product_id,
                sku=clean_text(raw.get("sku"), "sku", max_length=64, required=True),
                barcode=clean_text(raw.get("barcode"), "barcode", max_length=64),
                price=parse_money(raw.get("price", base_price), "price"),
                stock=stock,
                attribute_summary=clean_text(raw.get("attribute_summary"), "attribute_summary")
                or ", ".join(f"{k}: {v}" for k, v in values.items()),
                attribute_values=values,
            ))
        return product, variants

    # =========================================================================
    # STOCK
    # =========================================================================

    def adjust_stock(self, variant_id: str, delta: int) -> Variant:
        """
        Apply a stock delta (negative on sale, positive on return/receive).

        Raises:
            NotFoundError: unknown variant
            ValidationError: the result would be negative
        """
        with lock_for_update(self.state):
            variant = self.state.get("variants", variant_id)
            if not variant:
                raise NotFoundError("Variant not found", details={"variant_id": variant_id})
            new_stock = variant.stock + delta
            if new_stock < 0:
                raise ValidationError(
                    f"Stock for '{variant.sku}' cannot go below zero",
                    details={"variant_id": variant_id, "stock": variant.stock, "delta": delta},
                )
            return self.state.put("variants", replace(variant, stock=new_stock))

    # =========================================================================
    # QUERIES
    # =========================================================================

    def find_variant(self, variant_id: str) -> Variant | None:
        return self.state.get("variants", variant_id)

    def find_variant_by_code(self, code: str) -> Variant | None:
        """Scanner/keyboard lookup: barcode first, then SKU."""
        if not code:
            return None
        code = code.strip()
        for variant in self.state.all("variants"):
            if variant.barcode == code or variant.sku == code:
                return variant
        return None

    def get_product(self, product_id: str) -> Product | None:
        return self.state.get("products", product_id)

    def list_products(self) -> list[Product]:
        return sorted(self.state.all("products"), key=lambda p: p.name.lower())

    def variants_for_product(self, product_id: str) -> list[Variant]:
        return self.state.filter("variants", lambda v: v.product_id == product_id)

    def low_stock_variants(self, threshold: int = 5) -> list[Variant]:
        return sorted(
            self.state.filter("variants", lambda v: v.stock <= threshold),
            key=lambda v: v.stock,
        )

    def seed_demo_catalog(self) -> Product | None:
        """Seed one demo product when the catalog is empty (first local run)."""
        if self.state.count("products"):
            return None
        product = Product(
            id="demo-shirt",
            name="Demo T-Shirt",
            description="Starter product",
            category="Clothing",
            base_price=Decimal("20.00"),
        )
        variant = Variant(
            id="demo-var",
            product_id=product.id,
            sku="DEMO-001",
            barcode="123456",
            price=Decimal("20.00"),
            stock=10,
            attribute_summary="Standard",
        )
        return self.add_product(product, [variant])
