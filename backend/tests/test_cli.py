from assetdesk.extensions import db
from assetdesk.models import Asset, Invoice


def test_seed_demo_and_show(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert db.session.query(Asset).count() == 4
    invoice = db.session.query(Invoice).one()
    assert invoice.buyer == "Demo Customer"

    result = runner.invoke(args=["invoices", "show", invoice.invoice_number])
    assert result.exit_code == 0, result.output
    assert invoice.invoice_number in result.output
    assert "sold 1 x Office Chair" in result.output


def test_seed_demo_is_repeatable(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["system", "seed-demo"])

    result = runner.invoke(args=["system", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "SKIP" in result.output
    assert db.session.query(Invoice).count() == 1


def test_show_unknown_invoice_fails(app, db_session):
    result = app.test_cli_runner().invoke(args=["invoices", "show", "INV-1999-0001"])
    assert result.exit_code != 0
    assert "not found" in result.output
