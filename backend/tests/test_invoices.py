"""
Invoice engine tests.

Verifies:
- totals are computed once from the request's unit prices
- sales decrement and purchases increment stock, one movement per item
- sales that exceed live stock are rejected before any write
- a stock failure mid-invoice rolls the whole unit of work back
- invoice numbers are sequential and unique
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from assetdesk import create_app
from assetdesk.config import TestConfig
from assetdesk.extensions import db
from assetdesk.models import Invoice, InvoiceCounter, Movement
from assetdesk.errors import InvoiceError, NotFoundError, PartialApplicationError, ValidationError
from assetdesk.services import asset_service, concurrency, invoice_service
from assetdesk.services.asset_service import InsufficientStockError
from assetdesk.services.invoice_service import InvoiceItemRequest, calc_totals
from assetdesk.services.sequence_service import SequenceError, invoice_scope
from assetdesk.time_utils import current_year


def _sale_movements():
    return db.session.query(Movement).filter(Movement.action.in_(["sold", "purchased"])).order_by(Movement.id).all()


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:

    def test_total_law(self):
        items = [
            InvoiceItemRequest(asset_id=1, quantity=3, unit_price=Decimal("500.00")),
            InvoiceItemRequest(asset_id=2, quantity=2, unit_price=Decimal("19.99")),
        ]
        totals = calc_totals(items, discount=Decimal("40.00"), vat=Decimal("5"), paid_amount=Decimal("2000"))

        assert totals.subtotal == Decimal("1539.98")
        assert totals.vat_amount == Decimal("76.999")
        assert totals.grand_total == Decimal("1576.979")
        assert totals.returned_amount == Decimal("423.021")

    def test_vat_amount_is_not_rounded(self):
        items = [InvoiceItemRequest(asset_id=1, quantity=1, unit_price=Decimal("0.50"))]
        totals = calc_totals(items, vat=Decimal("5"))
        assert totals.vat_amount == Decimal("0.025")
        assert totals.grand_total == Decimal("0.525")

    def test_underpayment_is_negative_returned(self):
        items = [InvoiceItemRequest(asset_id=1, quantity=1, unit_price=Decimal("100"))]
        totals = calc_totals(items, paid_amount=Decimal("60"))
        assert totals.returned_amount == Decimal("-40")


# =============================================================================
# SALE / PURCHASE SCENARIOS
# =============================================================================


class TestInvoiceCreation:

    def test_sale_invoice_scenario(self, auth_client, make_asset):
        asset = make_asset(quantity=7)

        resp = auth_client.post("/api/invoices", json={
            "type": "sale",
            "buyer": "Acme Ltd",
            "items": [{"asset_id": asset.id, "quantity": 3, "unit_price": 500}],
            "discount": 0,
            "vat": 5,
        })
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        assert body["subtotal"] == 1500.0
        assert body["vat_amount"] == 75.0
        assert body["grand_total"] == 1575.0
        assert body["returned_amount"] == -1575.0
        assert body["payment_method"] == "cash"
        assert body["buyer"] == "Acme Ltd"
        assert body["seller"] == ""
        assert body["invoice_number"] == f"INV-{current_year()}-0001"
        assert body["items"] == [
            {"asset_id": asset.id, "name": "Chair", "quantity": 3, "unit_price": 500.0, "total": 1500.0}
        ]

        assert asset_service.get_asset(asset.id).quantity == 4

        sold = _sale_movements()
        assert len(sold) == 1
        assert sold[0].action == "sold"
        assert sold[0].type == "sale"
        assert sold[0].quantity == 3
        assert sold[0].invoice_number == body["invoice_number"]
        assert sold[0].invoice_id == body["id"]
        assert sold[0].party_name == "Acme Ltd"

    def test_oversell_rejected_without_side_effects(self, auth_client, make_asset):
        asset = make_asset(quantity=4)
        movements_before = db.session.query(Movement).count()

        resp = auth_client.post("/api/invoices", json={
            "buyer": "Acme Ltd",
            "items": [{"asset_id": asset.id, "quantity": 100, "unit_price": 500}],
        })
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "VALIDATION"
        assert body["details"]["stage"] == "validating"
        assert body["details"]["items"][0]["available"] == 4

        assert asset_service.get_asset(asset.id).quantity == 4
        assert db.session.query(Movement).count() == movements_before
        assert db.session.query(Invoice).count() == 0
        assert db.session.query(InvoiceCounter).count() == 0

    def test_purchase_increments_stock(self, make_asset, make_invoice):
        asset = make_asset(quantity=2)

        invoice = make_invoice(
            [{"asset_id": asset.id, "quantity": 5, "unit_price": 450}],
            type="purchase",
            party="Supplier Co",
            payment_method="bank",
        )
        assert invoice.type == "purchase"
        assert invoice.seller == "Supplier Co"
        assert invoice.buyer is None
        assert asset_service.get_asset(asset.id).quantity == 7

        purchased = _sale_movements()
        assert [(m.action, m.type, m.quantity, m.party_name) for m in purchased] == [
            ("purchased", "purchase", 5, "Supplier Co")
        ]

    def test_movements_follow_item_order(self, make_asset, make_invoice):
        a = make_asset(name="Chair")
        b = make_asset(name="Table")
        c = make_asset(name="Lamp", category="Interior")

        invoice = make_invoice([
            {"asset_id": c.id, "quantity": 1, "unit_price": 10},
            {"asset_id": a.id, "quantity": 2, "unit_price": 10},
            {"asset_id": b.id, "quantity": 3, "unit_price": 10},
        ])

        assert [m.asset_id for m in _sale_movements()] == [c.id, a.id, b.id]
        assert [line.position for line in invoice.lines] == [1, 2, 3]
        assert invoice.subtotal == Decimal("60.00")

    def test_totals_immune_to_later_price_edits(self, auth_client, make_asset, make_invoice):
        asset = make_asset(unit_price=500)
        invoice = make_invoice([{"asset_id": asset.id, "quantity": 2, "unit_price": 480}], vat=10)

        asset_service.update_asset(asset.id, {"unit_price": 9999, "name": "Renamed chair"})

        body = auth_client.get(f"/api/invoices/{invoice.id}").get_json()
        assert body["grand_total"] == 1056.0
        assert body["items"][0]["unit_price"] == 480.0
        assert body["items"][0]["name"] == "Chair"

    def test_invoice_survives_asset_deletion(self, auth_client, make_asset, make_invoice):
        asset = make_asset()
        invoice = make_invoice([{"asset_id": asset.id, "quantity": 1, "unit_price": 500}])

        asset_service.delete_asset(asset.id)

        resp = auth_client.get(f"/api/invoices/{invoice.id}")
        assert resp.status_code == 200
        assert resp.get_json()["items"][0]["asset_id"] == asset.id

    def test_sub_cent_vat_amount_is_kept_exact(self, auth_client, make_asset):
        asset = make_asset()

        resp = auth_client.post("/api/invoices", json={
            "buyer": "Acme Ltd",
            "items": [{"asset_id": asset.id, "quantity": 1, "unit_price": 10.01}],
            "vat": 5,
        })
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        assert body["vat_amount"] == 0.5005
        assert body["grand_total"] == 10.5105
        assert body["returned_amount"] == -10.5105

        stored = db.session.get(Invoice, body["id"])
        assert stored.grand_total == Decimal("10.5105")

    def test_fractional_vat_rate_is_stored_as_given(self, make_asset, make_invoice):
        asset = make_asset()

        invoice = make_invoice([{"asset_id": asset.id, "quantity": 2, "unit_price": 500}], vat="7.125")

        assert invoice.vat == Decimal("7.125")
        assert invoice.vat_amount == Decimal("71.25")
        assert invoice.grand_total == Decimal("1071.25")
        assert invoice.to_dict()["vat"] == 7.125

    def test_sequential_unique_numbers(self, make_asset, make_invoice):
        asset = make_asset(quantity=50)
        numbers = [
            make_invoice([{"asset_id": asset.id, "quantity": 1, "unit_price": 1}]).invoice_number
            for _ in range(5)
        ]
        year = current_year()
        assert numbers == [f"INV-{year}-{n:04d}" for n in range(1, 6)]
        assert len(set(numbers)) == 5

    def test_list_and_filter_by_type(self, auth_client, make_asset, make_invoice):
        asset = make_asset()
        make_invoice([{"asset_id": asset.id, "quantity": 1, "unit_price": 1}])
        make_invoice([{"asset_id": asset.id, "quantity": 1, "unit_price": 1}], type="purchase", party="Supplier Co")

        assert auth_client.get("/api/invoices").get_json()["count"] == 2
        body = auth_client.get("/api/invoices?type=purchase").get_json()
        assert [inv["type"] for inv in body["items"]] == ["purchase"]
        assert auth_client.get("/api/invoices?type=refund").status_code == 400

    def test_get_missing_invoice_is_404(self, auth_client):
        assert auth_client.get("/api/invoices/9999").status_code == 404


# =============================================================================
# REQUEST VALIDATION
# =============================================================================


class TestInvoiceValidation:

    @pytest.fixture
    def asset(self, make_asset):
        return make_asset()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"items": []},
            {"buyer": "   "},
            {"buyer": "Acme Ltd", "seller": "Someone"},
            {"type": "refund"},
            {"discount": -1},
            {"vat": 101},
            {"paid_amount": -5},
            {"payment_method": "barter"},
            {"discount": 10000},
            {"number": "INV-1999-0001"},
            {"vat": "7.1255"},
            {"discount": "0.005"},
            {"paid_amount": 1.999},
        ],
    )
    def test_invalid_requests(self, asset, overrides):
        payload = {"buyer": "Acme Ltd", "items": [{"asset_id": asset.id, "quantity": 1, "unit_price": 500}]}
        payload.update(overrides)
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(payload)
        assert db.session.query(Invoice).count() == 0

    def test_item_requires_asset_id(self, asset):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice({"buyer": "Acme Ltd", "items": [{"quantity": 1, "unit_price": 500}]})

    @pytest.mark.parametrize(
        "item",
        [
            {"quantity": 0, "unit_price": 500},
            {"quantity": 1.5, "unit_price": 500},
            {"quantity": 1},
            {"quantity": 1, "unit_price": -1},
            {"quantity": 1, "unit_price": 500, "discount": 5},
            {"quantity": 1, "unit_price": 0.125},
        ],
    )
    def test_invalid_items(self, asset, item):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice({"buyer": "Acme Ltd", "items": [{"asset_id": asset.id, **item}]})

    def test_purchase_requires_seller(self, asset):
        with pytest.raises(ValidationError) as exc_info:
            invoice_service.create_invoice({
                "type": "purchase",
                "items": [{"asset_id": asset.id, "quantity": 1, "unit_price": 1}],
            })
        assert "seller" in exc_info.value.message

    def test_duplicate_asset_rejected(self, asset):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice({
                "buyer": "Acme Ltd",
                "items": [
                    {"asset_id": asset.id, "quantity": 1, "unit_price": 1},
                    {"asset_id": asset.id, "quantity": 1, "unit_price": 1},
                ],
            })

    def test_unknown_asset_is_not_found(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            invoice_service.create_invoice({
                "buyer": "Acme Ltd",
                "items": [{"asset_id": 4242, "quantity": 1, "unit_price": 1}],
            })
        assert exc_info.value.details["stage"] == "validating"

    def test_non_object_body_rejected(self, auth_client):
        resp = auth_client.post("/api/invoices", json=[1, 2])
        assert resp.status_code == 400

    def test_empty_items_reports_validating_stage(self, auth_client):
        resp = auth_client.post("/api/invoices", json={"buyer": "Acme Ltd", "items": []})
        assert resp.status_code == 400
        assert resp.get_json()["details"]["stage"] == "validating"


# =============================================================================
# FAILURE SEMANTICS
# =============================================================================


class TestInvoiceFailures:

    def test_stock_failure_rolls_back_everything(self, auth_client, make_asset, monkeypatch):
        a = make_asset(name="Chair", quantity=5)
        b = make_asset(name="Table", quantity=5)

        real_adjust = invoice_service.adjust_quantity

        def failing_adjust(asset_id, delta):
            if asset_id == b.id:
                raise InsufficientStockError(asset_service.get_asset(asset_id), -delta)
            return real_adjust(asset_id, delta)

        monkeypatch.setattr(invoice_service, "adjust_quantity", failing_adjust)

        resp = auth_client.post("/api/invoices", json={
            "buyer": "Acme Ltd",
            "items": [
                {"asset_id": a.id, "quantity": 2, "unit_price": 10},
                {"asset_id": b.id, "quantity": 2, "unit_price": 10},
            ],
        })
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["code"] == "PARTIAL_APPLICATION"
        assert body["details"]["stage"] == "stock_applying"
        assert body["details"]["item_index"] == 1
        assert body["details"]["asset_id"] == b.id
        assert body["details"]["rolled_back"] is True
        assert body["details"]["invoice_number"] == f"INV-{current_year()}-0001"

        assert asset_service.get_asset(a.id).quantity == 5
        assert asset_service.get_asset(b.id).quantity == 5
        assert db.session.query(Invoice).count() == 0
        assert _sale_movements() == []

        # The counter increment was rolled back with the invoice
        monkeypatch.setattr(invoice_service, "adjust_quantity", real_adjust)
        resp = auth_client.post("/api/invoices", json={
            "buyer": "Acme Ltd",
            "items": [{"asset_id": a.id, "quantity": 1, "unit_price": 10}],
        })
        assert resp.status_code == 201
        assert resp.get_json()["invoice_number"] == f"INV-{current_year()}-0001"

    def test_partial_application_error_shape(self):
        err = PartialApplicationError(
            "boom", invoice_number="INV-2026-0009", item_index=2, asset_id=7, rolled_back=False
        )
        assert err.status_code == 500
        assert err.stage == "stock_applying"
        assert err.to_dict()["details"] == {
            "stage": "stock_applying",
            "invoice_number": "INV-2026-0009",
            "item_index": 2,
            "asset_id": 7,
            "rolled_back": False,
        }

    def test_numbering_failure_aborts_invoice(self, make_asset, monkeypatch):
        asset = make_asset()

        def broken_allocate(scope_key):
            raise SequenceError("counter store unavailable")

        monkeypatch.setattr(invoice_service, "allocate", broken_allocate)

        with pytest.raises(InvoiceError) as exc_info:
            invoice_service.create_invoice({
                "buyer": "Acme Ltd",
                "items": [{"asset_id": asset.id, "quantity": 1, "unit_price": 1}],
            })
        assert exc_info.value.stage == "numbering"
        assert exc_info.value.status_code == 503
        assert db.session.query(Invoice).count() == 0
        assert asset_service.get_asset(asset.id).quantity == 10

    def test_store_outage_reports_failing_stage(self, auth_client, make_asset, monkeypatch):
        asset = make_asset()

        def locked_allocate(scope_key):
            raise OperationalError("UPDATE invoice_counters", {}, Exception("database is locked"))

        monkeypatch.setattr(invoice_service, "allocate", locked_allocate)
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

        resp = auth_client.post("/api/invoices", json={
            "buyer": "Acme Ltd",
            "items": [{"asset_id": asset.id, "quantity": 1, "unit_price": 1}],
        })
        assert resp.status_code == 503
        body = resp.get_json()
        assert body["code"] == "DEPENDENCY"
        assert body["details"]["stage"] == "numbering"
        assert db.session.query(Invoice).count() == 0
        assert asset_service.get_asset(asset.id).quantity == 10

    def test_scope_is_per_year(self):
        assert invoice_scope("INV", 2031) == "INV-2031"


# =============================================================================
# CONCURRENT NUMBERING
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, so every thread gets its own connection."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'assetdesk.sqlite3'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


class TestConcurrentNumbering:

    def test_concurrent_invoices_get_distinct_consecutive_numbers(self, file_app):
        workers = 10
        with file_app.app_context():
            asset_id = asset_service.create_asset({
                "name": "Chair",
                "category": "Furniture",
                "unit_price": 5,
                "quantity": workers,
            }).id

        start = threading.Barrier(workers, timeout=30)

        def create_one(_):
            with file_app.app_context():
                start.wait()
                invoice = invoice_service.create_invoice({
                    "buyer": "Acme Ltd",
                    "items": [{"asset_id": asset_id, "quantity": 1, "unit_price": 5}],
                })
                return invoice.invoice_number

        with ThreadPoolExecutor(max_workers=workers) as pool:
            numbers = list(pool.map(create_one, range(workers)))

        year = current_year()
        assert len(set(numbers)) == workers
        assert sorted(numbers) == [f"INV-{year}-{n:04d}" for n in range(1, workers + 1)]

        with file_app.app_context():
            assert asset_service.get_asset(asset_id).quantity == 0
            assert db.session.query(Movement).filter_by(action="sold").count() == workers
            assert db.session.query(InvoiceCounter).one().seq == workers
