import time

import pytest

from lightweb3.domain.errors import ConnectionFailed, EventNotFound, FilterTeardownFailed, NodeError
from lightweb3.domain.matchers import TopicEquals
from lightweb3.domain.topics import address_topic, event_topic

from conftest import CONTRACT, FILTER_ID, OTHER, rpc_block, rpc_log

SIG = "Transfer(address,address,uint256)"
T0 = event_topic(SIG)
ALICE = address_topic("0x" + "a1" * 20)
BOB = address_topic("0x" + "b0" * 20)


def target_log(**kw):
    return rpc_log(T0, ALICE, BOB, **kw)


@pytest.mark.parametrize("n", [1, 3, 6])
async def test_wait_for_event_returns_log_from_poll_n(web3, transport, n):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", *([[]] * (n - 1)), [target_log(tx=0x77)], [])
    transport.script("eth_uninstallFilter", True)

    log = await web3.wait_for_event(5.0, [CONTRACT], SIG, [[ALICE]])

    assert log.tx_hash == 0x77
    assert len(transport.calls_to("eth_getFilterChanges")) == n
    assert transport.calls_to("eth_uninstallFilter") == [[FILTER_ID]]
    assert transport.calls[-1][0] == "eth_uninstallFilter"


async def test_wait_for_event_installs_signature_and_indexed_groups(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [target_log()])
    transport.script("eth_uninstallFilter", True)

    await web3.wait_for_event(1.0, [CONTRACT], SIG, [[ALICE], None, [BOB, ALICE]])

    (spec,), = transport.calls_to("eth_newFilter")
    assert spec == {
        "address": [CONTRACT],
        "fromBlock": None,
        "toBlock": None,
        "topics": [["0x" + T0.hex()], ["0x" + ALICE.hex()], None, ["0x" + BOB.hex(), "0x" + ALICE.hex()]],
    }
    assert transport.calls_to("eth_getFilterChanges") == [[FILTER_ID]]


async def test_wait_for_event_matcher_sees_logs_in_order(web3, transport):
    first, second = target_log(tx=1, index=0), rpc_log(T0, BOB, ALICE, tx=2, index=1)
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [first, second])
    transport.script("eth_uninstallFilter", True)
    seen = []

    def accept_bob_sender(log):
        seen.append(log.tx_hash)
        return log.topics[1] == BOB

    log = await web3.wait_for_event(1.0, [CONTRACT], SIG, matcher=accept_bob_sender)
    assert log.tx_hash == 2
    assert seen == [1, 2]


async def test_wait_for_event_accepts_matcher_objects(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [target_log(tx=1)], [rpc_log(T0, BOB, ALICE, tx=2)])
    transport.script("eth_uninstallFilter", True)

    log = await web3.wait_for_event(1.0, [CONTRACT], SIG, matcher=TopicEquals(1, BOB))
    assert log.tx_hash == 2


async def test_wait_for_event_times_out_and_still_uninstalls(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [target_log()])
    transport.script("eth_uninstallFilter", True)
    budget = 0.2

    t0 = time.monotonic()
    with pytest.raises(EventNotFound) as exc:
        await web3.wait_for_event(budget, [CONTRACT], SIG, matcher=lambda log: False)
    elapsed = time.monotonic() - t0

    assert exc.value.signature == SIG
    assert budget <= elapsed < budget + 0.25
    assert len(transport.calls_to("eth_uninstallFilter")) == 1


async def test_poll_error_propagates_after_teardown(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [], ConnectionFailed("boom"))
    transport.script("eth_uninstallFilter", True)

    with pytest.raises(ConnectionFailed):
        await web3.wait_for_event(5.0, [CONTRACT], SIG)
    assert len(transport.calls_to("eth_getFilterChanges")) == 2
    assert transport.calls_to("eth_uninstallFilter") == [[FILTER_ID]]


async def test_poll_error_wins_over_teardown_failure(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", NodeError("eth_getFilterChanges", -32000, "filter not found"))
    transport.script("eth_uninstallFilter", ConnectionFailed("down"))

    with pytest.raises(NodeError):
        await web3.wait_for_event(5.0, [CONTRACT], SIG)


async def test_filter_creation_error_skips_teardown(web3, transport):
    transport.script("eth_newFilter", ConnectionFailed("refused"))

    with pytest.raises(ConnectionFailed):
        await web3.wait_for_event(1.0, [CONTRACT], SIG)
    assert transport.calls_to("eth_uninstallFilter") == []
    assert transport.calls_to("eth_getFilterChanges") == []


async def test_teardown_failure_does_not_discard_match(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [target_log(tx=9)])
    transport.script("eth_uninstallFilter", ConnectionFailed("down"))

    log = await web3.wait_for_event(1.0, [CONTRACT], SIG)
    assert log.tx_hash == 9


async def test_teardown_failure_after_match_reaches_callback(web3, transport):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [target_log(tx=9)])
    transport.script("eth_uninstallFilter", False)
    failures = []

    log = await web3.wait_for_event(1.0, [CONTRACT], SIG, on_teardown_failure=failures.append)

    assert log.tx_hash == 9
    assert len(failures) == 1
    assert isinstance(failures[0], FilterTeardownFailed)
    assert failures[0].filter_id == 0x1F
    assert failures[0].outcome is None


@pytest.mark.parametrize("uninstall", [ConnectionFailed("down"), False])
async def test_teardown_failure_after_timeout_is_reported(web3, transport, uninstall):
    transport.script("eth_newFilter", FILTER_ID)
    transport.script("eth_getFilterChanges", [])
    transport.script("eth_uninstallFilter", uninstall)

    with pytest.raises(FilterTeardownFailed) as exc:
        await web3.wait_for_event(0.05, [CONTRACT], SIG)
    assert exc.value.filter_id == 0x1F
    assert isinstance(exc.value.outcome, EventNotFound)


async def test_wait_for_event_rejects_bad_signature_before_any_call(web3, transport):
    from lightweb3.domain.errors import SignatureError

    with pytest.raises(SignatureError):
        await web3.wait_for_event(1.0, [CONTRACT], "Transfer(address")
    assert transport.calls == []


# ──────────────────────────────
# Stateless wait
# ──────────────────────────────

async def test_wait_for_event_alt_always_waits_the_full_delay(web3, transport):
    transport.script("eth_getLogs", [target_log(tx=5)])
    delay = 0.15

    t0 = time.monotonic()
    log = await web3.wait_for_event_alt(delay, [CONTRACT], SIG)
    elapsed = time.monotonic() - t0

    assert log.tx_hash == 5
    assert elapsed >= delay
    assert len(transport.calls_to("eth_getLogs")) == 1
    assert transport.calls_to("eth_newFilter") == []
    (spec,), = transport.calls_to("eth_getLogs")
    assert spec["fromBlock"] is None and spec["toBlock"] is None


async def test_wait_for_event_alt_single_check_then_not_found(web3, transport):
    transport.script("eth_getLogs", [target_log()])

    with pytest.raises(EventNotFound):
        await web3.wait_for_event_alt(0.01, [CONTRACT], SIG, matcher=lambda log: log.topics[1] == BOB)
    assert len(transport.calls_to("eth_getLogs")) == 1


async def test_wait_for_event_alt_rescan_can_match_same_log_twice(web3, transport):
    transport.script("eth_getLogs", [target_log(tx=3)])

    a = await web3.wait_for_event_alt(0.0, [CONTRACT], SIG)
    b = await web3.wait_for_event_alt(0.0, [CONTRACT], SIG)
    assert a == b


async def test_check_for_event_returns_first_or_none(web3, transport):
    transport.script("eth_getLogs", [target_log(tx=1), target_log(tx=2)], [])

    first = await web3.check_for_event([CONTRACT], SIG, [[ALICE]])
    assert first.tx_hash == 1
    assert await web3.check_for_event([CONTRACT], SIG) is None


# ──────────────────────────────
# Range scanner
# ──────────────────────────────

async def test_check_for_events_resolves_finalized_block_once(web3, transport):
    heights = iter([1000, 1001, 1002])
    transport.handle("eth_getBlockByNumber", lambda params: rpc_block(next(heights)))
    transport.script("eth_getLogs", [target_log()])

    sigs = [SIG, "Approval(address,address,uint256)"]
    logs = await web3.check_for_events(10, None, [CONTRACT, OTHER], sigs)

    assert len(logs) == 1
    assert transport.calls_to("eth_getBlockByNumber") == [["finalized", False]]
    (spec,), = transport.calls_to("eth_getLogs")
    assert spec["fromBlock"] == "0xa"
    assert spec["toBlock"] == hex(1000)
    assert spec["address"] == [CONTRACT, OTHER]
    assert spec["topics"] == [["0x" + event_topic(s).hex() for s in sigs]]


async def test_check_for_events_explicit_end_skips_lookup(web3, transport):
    transport.script("eth_getLogs", [])

    assert await web3.check_for_events(1, 20, [CONTRACT], [SIG]) == []
    assert transport.calls_to("eth_getBlockByNumber") == []
    (spec,), = transport.calls_to("eth_getLogs")
    assert spec["toBlock"] == "0x14"


async def test_check_for_events_without_signatures_returns_every_log(web3, transport):
    transport.script("eth_getLogs", [target_log(), rpc_log(address=CONTRACT, index=1)])

    logs = await web3.check_for_events(0, 10, [CONTRACT], [])

    assert len(logs) == 2
    (spec,), = transport.calls_to("eth_getLogs")
    assert spec["topics"] == []
    assert spec["fromBlock"] == "0x0"
    assert spec["toBlock"] == "0xa"


async def test_check_for_arbitrary_events_keeps_positions(web3, transport):
    transport.script("eth_getBlockByNumber", rpc_block(50))
    transport.script("eth_getLogs", [target_log(), target_log(index=1)])

    logs = await web3.check_for_arbitrary_events(0, None, [CONTRACT], [[T0], None, [BOB]])

    assert [l.log_index for l in logs] == [0, 1]
    (spec,), = transport.calls_to("eth_getLogs")
    assert spec["topics"] == [["0x" + T0.hex()], None, ["0x" + BOB.hex()]]
    assert spec["fromBlock"] == "0x0" and spec["toBlock"] == "0x32"
