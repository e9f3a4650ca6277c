from bizlocator.core.storage import MemoryKeyValueStore


def test_memory_store_get_and_set():
    store = MemoryKeyValueStore({"a": b"1"})

    assert store.get("a") == b"1"
    assert store.get("missing") is None

    store.set("b", bytearray(b"2"))
    assert store.get("b") == b"2"
    assert store.get("a") == b"1"
