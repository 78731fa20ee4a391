import pytest

from richpipe.exc import ConnectionClosed, ProtocolError
from richpipe.ipc.correlator import RequestCorrelator


@pytest.mark.trio
async def test_resolve_settles_matching_request():
    correlator = RequestCorrelator()
    promise = correlator.register("a", "SET_ACTIVITY")

    assert "a" in correlator
    assert correlator.resolve("a", {"ok": True})
    assert await promise.wait() == {"ok": True}
    assert len(correlator) == 0


@pytest.mark.trio
async def test_resolve_only_once():
    correlator = RequestCorrelator()
    promise = correlator.register("a", "SET_ACTIVITY")

    assert correlator.resolve("a", 1)
    assert not correlator.resolve("a", 2)
    assert not correlator.fail("a", RuntimeError())
    assert await promise.wait() == 1


def test_unknown_nonce_is_ignored():
    correlator = RequestCorrelator()

    assert not correlator.resolve("nope", {})
    assert not correlator.fail("nope", RuntimeError())


def test_duplicate_nonce_is_rejected():
    correlator = RequestCorrelator()
    correlator.register("a", "AUTHORIZE")

    with pytest.raises(ValueError):
        correlator.register("a", "AUTHORIZE")


@pytest.mark.trio
async def test_fail_raises_in_waiter():
    correlator = RequestCorrelator()
    promise = correlator.register("a", "AUTHORIZE")

    correlator.fail("a", ProtocolError({"code": 4000, "message": "bad"}))
    with pytest.raises(ProtocolError) as e:
        await promise.wait()

    assert e.value.code == 4000
    assert e.value.message == "bad"


@pytest.mark.trio
async def test_drain_all_fails_everything():
    correlator = RequestCorrelator()
    promises = [correlator.register(str(i), "SET_ACTIVITY") for i in range(3)]

    assert correlator.drain_all(ConnectionClosed()) == 3
    assert len(correlator) == 0

    for promise in promises:
        with pytest.raises(ConnectionClosed):
            await promise.wait()

    assert correlator.drain_all(ConnectionClosed()) == 0


def test_discard_forgets_request():
    correlator = RequestCorrelator()
    correlator.register("a", "SET_ACTIVITY")

    assert correlator.discard("a")
    assert "a" not in correlator
    assert not correlator.discard("a")
    assert not correlator.resolve("a", {})
