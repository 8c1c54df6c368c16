from conftest import cart, line
from shopledger.services import sales_service, shop_service


def test_shops_create_and_list(app, store):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["shops", "create", "--name", "Matara"])
    assert result.exit_code == 0
    assert "PASS Created shop: Matara" in result.output

    result = runner.invoke(args=["shops", "list"])
    assert "Matara" in result.output


def test_shops_rename_unknown(app):
    result = app.test_cli_runner().invoke(args=["shops", "rename", "77", "--name", "X"])
    assert result.exit_code != 0
    assert "Shop 77 not found" in result.output


def test_backup_save_and_restore(app, store, tmp_path):
    runner = app.test_cli_runner()
    shop_service.create_shop(store, "Before")
    path = tmp_path / "backup.sqlite"

    assert runner.invoke(args=["backup", "save", str(path)]).exit_code == 0
    shop_service.create_shop(store, "After")

    result = runner.invoke(args=["backup", "restore", str(path), "--yes"])
    assert result.exit_code == 0
    assert [s.name for s in shop_service.list_shops(store)] == ["Before"]


def test_backup_restore_rejects_garbage(app, store, tmp_path):
    shop_service.create_shop(store, "Keep")
    path = tmp_path / "junk.sqlite"
    path.write_bytes(b"junk")

    result = app.test_cli_runner().invoke(args=["backup", "restore", str(path), "--yes"])
    assert result.exit_code != 0
    assert [s.name for s in shop_service.list_shops(store)] == ["Keep"]


def test_ledger_outstanding(app, store, shop, make_product):
    tea = make_product("Tea", retail=1250)
    sales_service.finalize_sale(store, shop.id, cart(line(tea, 2), name="Dilan", mobile="0755"), paid_cents=0)

    result = app.test_cli_runner().invoke(args=["ledger", "outstanding", "--shop-id", str(shop.id)])
    assert result.exit_code == 0
    assert "Dilan" in result.output
    assert "25.00" in result.output
