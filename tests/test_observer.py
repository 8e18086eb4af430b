import asyncio
import json

from conftest import FakeRemote
from coordinator import StoreCoordinator
from local_cache import LocalCache
from observer import CrossContextObserver
from schemas import OrderStatus


def test_reports_writes_from_other_processes(tmp_path):
    mine = LocalCache(str(tmp_path))
    other = LocalCache(str(tmp_path))
    seen = []
    observer = CrossContextObserver(mine, lambda name, raw: seen.append((name, raw)))

    other.set("cart", b"[]")
    other.set("banners", b'[{"id": "b1"}]')
    assert sorted(observer.poll()) == ["banners", "cart"]
    assert sorted(seen) == [("banners", b'[{"id": "b1"}]'), ("cart", b"[]")]

    assert observer.poll() == []


def test_ignores_own_writes(tmp_path):
    mine = LocalCache(str(tmp_path))
    seen = []
    observer = CrossContextObserver(mine, lambda name, raw: seen.append(name))
    mine.set("orders", b"[]")
    assert observer.poll() == []
    assert seen == []


def test_reports_removal_as_none(tmp_path):
    mine = LocalCache(str(tmp_path))
    other = LocalCache(str(tmp_path))
    other.set("coupons", b"[]")
    seen = []
    observer = CrossContextObserver(mine, lambda name, raw: seen.append((name, raw)))
    other.remove("coupons")
    observer.poll()
    assert seen == [("coupons", None)]


def test_ignores_unrecognized_names(tmp_path):
    mine = LocalCache(str(tmp_path))
    other = LocalCache(str(tmp_path))
    seen = []
    observer = CrossContextObserver(mine, lambda name, raw: seen.append(name))
    other.set("is_admin", b"true")
    assert observer.poll() == []


def test_other_window_updates_coordinator(make_store, cache, customer):
    store = make_store()
    other = LocalCache(cache.directory)
    store.observer.reset()

    other.set("cart", json.dumps([{"product_id": "p2", "variant_id": "v1", "qty": 3}]).encode())
    other.set("settings", b"{broken")
    store.observer.poll()

    assert [(i.product_id, i.qty) for i in store.cart] == [("p2", 3)]
    # malformed payload falls back to the default settings
    assert store.settings.admin_username == "admin"
    assert store.settings.merchant_name != "Test Masala"
    assert store.remote.pushed == []


def test_observer_runs_with_the_coordinator(make_store, cache, customer):
    async def scenario():
        store = make_store()
        other_window = StoreCoordinator(cache=LocalCache(cache.directory), remote=FakeRemote())
        changed = []
        store.subscribe(changed.append)
        async with store:
            other_window.add_to_cart("p1", "v1", 2)
            other_window.place_order(customer, "COD")
            for _ in range(100):
                if store.orders:
                    break
                await asyncio.sleep(0.01)
        return store, changed

    store, changed = asyncio.run(scenario())
    assert store.orders[0].status == OrderStatus.PENDING
    assert store.cart == []
    assert "orders" in changed
