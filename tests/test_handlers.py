import pytest

from conftest import NODE, OTHER_NODE, block, create_with_fee, minipool_address

from minipool_indexer.constants import MINIPOOL_KIND, NODE_KIND
from minipool_indexer.models import (
    FinalisedMinipoolCountIncremented,
    MinipoolCreated,
    MinipoolDestroyed,
    NodeRegistered,
    Outcome,
)
from minipool_indexer.router import Indexer
from minipool_indexer.store import JsonEntityStore
from minipool_indexer.tracking import AddressRegistry


def _node(store):
    return store.load(NODE_KIND, NODE)


def _destroy(indexer, n, ts=1_700_000_100, node=NODE):
    return indexer.process(MinipoolDestroyed(node=node, minipool=minipool_address(n), block=block(ts)))


def _finalise(indexer, n, ts=1_700_000_200):
    return indexer.process(FinalisedMinipoolCountIncremented(from_address=minipool_address(n), block=block(ts)))


def test_node_registration_creates_once(indexer, store):
    assert _node(store) is not None
    assert _node(store).registered_block_time == 1_600_000_000

    result = indexer.process(NodeRegistered(node=NODE, block=block(1_650_000_000)))
    assert result.outcome is Outcome.SKIPPED_DUPLICATE
    assert _node(store).registered_block_time == 1_600_000_000


def test_creation_indexes_minipool_and_node(indexer, store, reader, registry):
    reader.effective[NODE], reader.minimum[NODE], reader.maximum[NODE] = 50, 5, 500

    result = create_with_fee(indexer, reader, 1, 10)

    assert result.applied
    minipool = store.load(MINIPOOL_KIND, minipool_address(1))
    assert minipool.node == NODE
    assert minipool.fee == 10
    assert minipool.destroyed_block_time == 0
    assert minipool.finalized_block_time == 0

    node = _node(store)
    assert node.minipool_ids == [minipool_address(1)]
    assert node.average_fee_for_active_minipools == 10
    assert (node.effective_rpl_staked, node.minimum_effective_rpl, node.maximum_effective_rpl) == (50, 5, 500)
    assert registry.addresses == [minipool_address(1)]


def test_creation_is_idempotent(indexer, store, reader, registry):
    create_with_fee(indexer, reader, 1, 10)
    reader.calls.clear()

    result = create_with_fee(indexer, reader, 1, 99)

    assert result.outcome is Outcome.SKIPPED_DUPLICATE
    assert _node(store).minipool_ids == [minipool_address(1)]
    assert store.load(MINIPOOL_KIND, minipool_address(1)).fee == 10
    assert reader.calls == []
    assert len(registry) == 1


def test_creation_with_missing_node_is_a_noop(indexer, store, reader, registry):
    result = create_with_fee(indexer, reader, 1, 10, node=OTHER_NODE)

    assert result.outcome is Outcome.SKIPPED_MISSING_NODE
    assert store.load(MINIPOOL_KIND, minipool_address(1)) is None
    assert store.load(NODE_KIND, OTHER_NODE) is None
    assert len(registry) == 0


def test_fee_is_fixed_at_creation(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    create_with_fee(indexer, reader, 2, 20)
    assert store.load(MINIPOOL_KIND, minipool_address(1)).fee == 10
    assert _node(store).minipool_ids == [minipool_address(1), minipool_address(2)]


def test_average_follows_destruction(indexer, store, reader):
    for n, fee in enumerate([10, 20, 30], start=1):
        create_with_fee(indexer, reader, n, fee)
    assert _node(store).average_fee_for_active_minipools == 20

    assert _destroy(indexer, 3).applied
    assert store.load(MINIPOOL_KIND, minipool_address(3)).destroyed_block_time == 1_700_000_100
    assert _node(store).average_fee_for_active_minipools == 15

    _destroy(indexer, 1)
    _destroy(indexer, 2)
    assert _node(store).average_fee_for_active_minipools == 0


def test_truncating_average_through_handlers(indexer, store, reader):
    for n, fee in enumerate([10, 10, 11], start=1):
        create_with_fee(indexer, reader, n, fee)
    assert _node(store).average_fee_for_active_minipools == 10


def test_destruction_refreshes_stake(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    reader.effective[NODE] = 42
    _destroy(indexer, 1)
    assert _node(store).effective_rpl_staked == 42


def test_destruction_redelivery_overwrites_with_same_timestamp(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    _destroy(indexer, 1)
    result = _destroy(indexer, 1)
    assert result.applied
    assert store.load(MINIPOOL_KIND, minipool_address(1)).destroyed_block_time == 1_700_000_100


def test_destruction_of_unknown_minipool_is_skipped(indexer, store):
    result = _destroy(indexer, 7)
    assert result.outcome is Outcome.SKIPPED_MISSING_MINIPOOL
    assert store.load(MINIPOOL_KIND, minipool_address(7)) is None


def test_destruction_with_unknown_node_is_skipped(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    result = _destroy(indexer, 1, node=OTHER_NODE)
    assert result.outcome is Outcome.SKIPPED_MISSING_NODE
    assert store.load(MINIPOOL_KIND, minipool_address(1)).destroyed_block_time == 0


def test_finalisation_updates_counters_and_average(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    create_with_fee(indexer, reader, 2, 30)

    assert _finalise(indexer, 2).applied

    assert store.load(MINIPOOL_KIND, minipool_address(2)).finalized_block_time == 1_700_000_200
    node = _node(store)
    assert node.total_finalized_minipools == 1
    assert node.withdrawable_minipools == 0
    assert node.average_fee_for_active_minipools == 10


def test_withdrawable_is_total_finalized_minus_one_clamped(indexer, store, reader):
    # Quirk kept on purpose: one finalisation leaves zero withdrawable, not one.
    for n in range(1, 4):
        create_with_fee(indexer, reader, n, 10)

    expected = [(1, 0), (2, 1), (3, 2)]
    for n, (total, withdrawable) in enumerate(expected, start=1):
        _finalise(indexer, n)
        node = _node(store)
        assert node.total_finalized_minipools == total
        assert node.withdrawable_minipools == withdrawable
        assert node.withdrawable_minipools >= 0


def test_finalisation_from_unknown_address_is_skipped(indexer, store):
    result = _finalise(indexer, 9)
    assert result.outcome is Outcome.SKIPPED_MISSING_MINIPOOL
    assert _node(store).total_finalized_minipools == 0


def test_destroyed_and_finalized_can_both_apply(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    _destroy(indexer, 1)
    _finalise(indexer, 1)
    minipool = store.load(MINIPOOL_KIND, minipool_address(1))
    assert minipool.destroyed_block_time and minipool.finalized_block_time
    assert _node(store).average_fee_for_active_minipools == 0


@pytest.mark.parametrize(
    "event",
    [
        MinipoolCreated(node=None, minipool=minipool_address(1), block=block()),
        MinipoolCreated(node=NODE, minipool=None, block=block()),
        MinipoolDestroyed(node=NODE, minipool=minipool_address(1), block=None),
        FinalisedMinipoolCountIncremented(from_address=None, block=block()),
        FinalisedMinipoolCountIncremented(from_address=minipool_address(1), block=None),
        NodeRegistered(node=None, block=block()),
    ],
)
def test_malformed_events_are_skipped(indexer, reader, event):
    reader.calls.clear()
    result = indexer.process(event)
    assert result.outcome is Outcome.SKIPPED_MALFORMED
    assert reader.calls == []


def test_fee_read_failure_propagates_and_saves_nothing(indexer, store, reader, registry):
    reader.fail_fee = True
    with pytest.raises(ConnectionError):
        create_with_fee(indexer, reader, 1, 10)
    assert store.load(MINIPOOL_KIND, minipool_address(1)) is None
    assert _node(store).minipool_ids == []
    assert len(registry) == 0


def test_stake_read_failure_on_creation_saves_nothing(indexer, store, reader):
    reader.fail_stake = True
    with pytest.raises(ConnectionError):
        create_with_fee(indexer, reader, 1, 10)
    assert store.load(MINIPOOL_KIND, minipool_address(1)) is None
    assert _node(store).minipool_ids == []


def test_stake_read_failure_on_destruction_saves_nothing(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    reader.fail_stake = True
    with pytest.raises(ConnectionError):
        _destroy(indexer, 1)
    assert store.load(MINIPOOL_KIND, minipool_address(1)).destroyed_block_time == 0
    assert _node(store).average_fee_for_active_minipools == 10


def test_stake_read_failure_on_finalisation_saves_nothing(indexer, store, reader):
    create_with_fee(indexer, reader, 1, 10)
    reader.fail_stake = True
    with pytest.raises(ConnectionError):
        _finalise(indexer, 1)
    assert store.load(MINIPOOL_KIND, minipool_address(1)).finalized_block_time == 0
    assert _node(store).total_finalized_minipools == 0


@pytest.mark.parametrize("bad_id", ["../../escaped", "0x1234", "0x" + "g" * 40])
def test_events_with_non_address_ids_are_skipped(indexer, store, reader, registry, bad_id):
    reader.calls.clear()
    events = [
        NodeRegistered(node=bad_id, block=block()),
        MinipoolCreated(node=bad_id, minipool=minipool_address(1), block=block()),
        MinipoolCreated(node=NODE, minipool=bad_id, block=block()),
        MinipoolDestroyed(node=NODE, minipool=bad_id, block=block()),
        FinalisedMinipoolCountIncremented(from_address=bad_id, block=block()),
    ]
    for event in events:
        assert indexer.process(event).outcome is Outcome.SKIPPED_MALFORMED
    assert reader.calls == []
    assert len(registry) == 0
    assert _node(store).minipool_ids == []


def test_non_address_ids_write_nothing_outside_the_store(tmp_path, reader):
    store_dir = tmp_path / "store"
    indexer = Indexer(JsonEntityStore(store_dir), reader, AddressRegistry())
    indexer.process(NodeRegistered(node="../../escaped", block=block()))
    assert not store_dir.exists() or not any(store_dir.rglob("*.json"))
    assert not any(tmp_path.rglob("escaped*"))
