import threading

from carrental.services.availability_index import AvailabilityIndex


def test_missing_car_is_not_found():
    index = AvailabilityIndex()
    assert index.is_available("nope").code == "CAR_NOT_FOUND"


def test_register_does_not_override_existing_flag():
    index = AvailabilityIndex()
    index.register("c1")
    index.set_availability("c1", False)
    index.register("c1", True)
    assert index.is_available("c1").value is False


def test_set_is_idempotent_and_mirrors_catalog(store):
    index = AvailabilityIndex(catalog=store)
    index.register("car-1")
    index.set_availability("car-1", False)
    index.set_availability("car-1", False)
    assert index.is_available("car-1").value is False
    assert store.get_car("car-1").available is False

    index.set_availability("car-1", True)
    assert store.get_car("car-1").available is True


def test_forget_and_snapshot():
    index = AvailabilityIndex()
    index.register("a")
    index.register("b", False)
    assert index.snapshot() == {"a": True, "b": False}
    index.forget("a")
    assert "a" not in index
    assert index.snapshot() == {"b": False}


def test_concurrent_writes_end_in_a_written_value():
    index = AvailabilityIndex()
    index.register("c1")
    barrier = threading.Barrier(8)

    def worker(flag):
        barrier.wait()
        for _ in range(100):
            index.set_availability("c1", flag)

    threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert index.is_available("c1").value in (True, False)
