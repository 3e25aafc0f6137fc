# Overview: Flask API routes for the product/variant catalog; parses input and returns JSON responses.

# backend/retailpos/routes/catalog.py
"""
Catalog API Routes

SECURITY:
- Reads and code lookup: any authenticated user
- Product edits and manual stock adjustments: ADMIN, MANAGER
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, NotFoundError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _product_payload(catalog, product) -> dict:
    d = product.to_dict()
    d["variants"] = [v.to_dict() for v in catalog.variants_for_product(product.id)]
    return d


@catalog_bp.get("/products")
@require_auth
def list_products_route():
    catalog = get_ledger().catalog
    return jsonify({
        "products": [_product_payload(catalog, p) for p in catalog.list_products()]
    }), 200


@catalog_bp.get("/products/<product_id>")
@require_auth
def get_product_route(product_id: str):
    catalog = get_ledger().catalog
    product = catalog.get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": _product_payload(catalog, product)}), 200


@catalog_bp.post("/products")
@require_auth
@require_role("ADMIN", "MANAGER")
def create_product_route():
    """
    Request body: see CatalogService.build_product().
    """
    try:
        catalog = get_ledger().catalog
        product, variants = catalog.build_product(request.get_json(silent=True) or {})
        catalog.add_product(product, variants)
        return jsonify({"product": _product_payload(catalog, product)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/products/<product_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def update_product_route(product_id: str):
    """Replaces the product and its whole variant set."""
    try:
        catalog = get_ledger().catalog
        payload = dict(request.get_json(silent=True) or {})
        payload["id"] = product_id
        product, variants = catalog.build_product(payload)
        catalog.update_product(product, variants)
        return jsonify({"product": _product_payload(catalog, product)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/products/<product_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def delete_product_route(product_id: str):
    try:
        product = get_ledger().catalog.delete_product(product_id)
        return jsonify({"deleted": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.delete("/variants/<variant_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def delete_variant_route(variant_id: str):
    try:
        variant = get_ledger().catalog.delete_variant(variant_id)
        return jsonify({"deleted": variant.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.get("/lookup/<code>")
@require_auth
def lookup_code_route(code: str):
    """Scanner lookup by barcode or SKU."""
    catalog = get_ledger().catalog
    variant = catalog.find_variant_by_code(code)
    if not variant:
        e = NotFoundError("No variant with that code", details={"code": code})
        return jsonify(e.to_dict()), e.status_code

    product = catalog.get_product(variant.product_id)
    return jsonify({
        "variant": variant.to_dict(),
        "product": product.to_dict() if product else None,
    }), 200


@catalog_bp.post("/variants/<variant_id>/adjust")
@require_auth
@require_role("ADMIN", "MANAGER")
def adjust_stock_route(variant_id: str):
    """
    Request body:
    {
        "delta": -2
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        delta = data.get("delta")
        if isinstance(delta, bool) or not isinstance(delta, int):
            return jsonify({"error": "delta must be an integer"}), 400

        variant = get_ledger().catalog.adjust_stock(variant_id, delta)
        return jsonify({"variant": variant.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/low-stock")
@require_auth
def low_stock_route():
    threshold = request.args.get(
        "threshold",
        default=current_app.config.get("LOW_STOCK_THRESHOLD", 5),
        type=int,
    )
    variants = get_ledger().catalog.low_stock_variants(threshold)
    return jsonify({
        "threshold": threshold,
        "variants": [v.to_dict() for v in variants],
    }), 200
