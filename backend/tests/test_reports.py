from assetdesk.services import reporting_service
from assetdesk.time_utils import utcnow


def test_summary_empty(auth_client):
    body = auth_client.get("/api/reports/summary").get_json()
    assert body["total_assets"] == 0
    assert body["total_stock"] == 0
    assert body["stock_value"] == 0.0
    assert body["invoice_count"] == 0
    assert body["movement_count"] == 0
    assert body["monthly"] == []


def test_summary_totals(auth_client, make_asset, make_invoice):
    chair = make_asset(name="Chair", unit_price=500, quantity=10)
    make_asset(name="Laptop", category="Electronics", unit_price=1000, quantity=2)
    make_invoice([{"asset_id": chair.id, "quantity": 4, "unit_price": 500}])
    make_invoice([{"asset_id": chair.id, "quantity": 1, "unit_price": 300}], type="purchase", party="Supplier Co")

    body = auth_client.get("/api/reports/summary").get_json()
    assert body["total_assets"] == 2
    assert body["total_stock"] == 9
    assert body["stock_value"] == 5500.0
    assert body["invoice_count"] == 2
    assert body["invoice_count_by_type"] == {"sale": 1, "purchase": 1}
    assert body["movement_count"] == 4


def test_monthly_buckets(make_asset, make_invoice):
    chair = make_asset(quantity=10)
    make_invoice([{"asset_id": chair.id, "quantity": 1, "unit_price": 100}])
    make_invoice([{"asset_id": chair.id, "quantity": 2, "unit_price": 100}], vat=10)
    make_invoice([{"asset_id": chair.id, "quantity": 1, "unit_price": 40}], type="purchase", party="Supplier Co")

    monthly = reporting_service.monthly_invoice_totals()
    now = utcnow()
    assert monthly == [
        {
            "period": f"{now.year:04d}-{now.month:02d}",
            "invoice_count": 3,
            "sale_total": 320.0,
            "purchase_total": 40.0,
        }
    ]
