# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

"""
Invoice routes.

SECURITY:
- List/create/fetch/PDF require an authenticated administrator.
- GET /api/invoices/verify/<invoice_number> is public: it is the target of
  the QR code printed on every invoice. Each call is audit-logged.
"""
from flask import Blueprint, Response, request, current_app

from ..decorators import require_auth
from ..errors import AppError
from ..services import invoice_service, pdf_service, verification_service

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices():
    """
    Query params:
    - type: sale | purchase (optional)
    """
    try:
        invoices = invoice_service.list_invoices(type=request.args.get("type") or None)
    except AppError as e:
        return e.to_dict(), e.status_code

    return {"items": [inv.to_dict() for inv in invoices], "count": len(invoices)}, 200


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """
    Create a sale or purchase invoice and apply its stock effects.

    Request body:
    {
        "type": "sale",
        "buyer": "Acme Ltd",
        "items": [{"asset_id": 1, "quantity": 3, "unit_price": 500}],
        "discount": 0,
        "vat": 5,
        "paid_amount": 1600,
        "payment_method": "cash",
        "notes": ""
    }

    Errors carry details.stage naming the engine stage that failed.
    A stock failure after numbering returns 500 with code PARTIAL_APPLICATION.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        invoice = invoice_service.create_invoice(
            payload,
            number_prefix=current_app.config["INVOICE_NUMBER_PREFIX"],
            number_pad=current_app.config["INVOICE_NUMBER_PAD"],
        )
    except AppError as e:
        if e.status_code >= 500:
            current_app.logger.error("Invoice creation failed: %s", e.to_dict())
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return {"error": "Failed to create invoice"}, 500

    return invoice.to_dict(), 201


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except AppError as e:
        return e.to_dict(), e.status_code
    return invoice.to_dict(), 200


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        pdf_bytes = pdf_service.render_invoice_pdf(
            invoice,
            public_base_url=current_app.config["PUBLIC_BASE_URL"],
            timeout_seconds=current_app.config["PDF_RENDER_TIMEOUT_SECONDS"],
        )
    except AppError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to render PDF for invoice %s", invoice_id)
        return {"error": "Failed to generate PDF"}, 500

    filename = pdf_service.pdf_filename(invoice)
    return Response(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@invoices_bp.get("/verify/<path:invoice_number>")
def verify_invoice_route(invoice_number: str):
    """Public exact-match lookup. Not found is a plain 404 with no hints."""
    invoice = verification_service.verify_invoice(
        invoice_number,
        ip=verification_service.client_ip(request.headers, request.remote_addr),
        user_agent=request.headers.get("User-Agent"),
    )
    if invoice is None:
        return {"error": "Invoice not found", "verified": False}, 404

    return {"verified": True, "invoice": invoice.to_dict()}, 200
