from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from fake_chain import ADMIN, ALICE, BOB, CAROL, FakeSigningProvider
from xo.context import build_client_context
from xo.domain import PredictionOption, PredictionStatus
from xo.errors import LedgerConnectionError
from xo.repositories import ViewName


def _matched_fields(**overrides):
    fields = dict(
        opponent=BOB,
        opponent_choice=PredictionOption.OPTION_B,
        status=PredictionStatus.MATCHED,
    )
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_open_view_lists_only_unexpired_open_records(context, chain, clock):
    live = chain.seed()
    chain.seed(expiry_time=int(clock()) - 1)
    chain.seed(**_matched_fields())

    snapshot = await context.repository.refresh_open()

    assert snapshot.ids == (live.id,)
    assert snapshot.total == 2
    assert snapshot.error is None
    assert snapshot.refreshed_at is not None
    assert context.repository.open is snapshot


@pytest.mark.asyncio
async def test_open_view_respects_offset_and_limit(context, chain):
    for _ in range(5):
        chain.seed()

    snapshot = await context.repository.refresh_open(offset=2, limit=2)

    assert snapshot.ids == (3, 4)
    assert snapshot.offset == 2
    assert snapshot.total == 5


@pytest.mark.asyncio
async def test_unresolvable_id_is_dropped_not_fatal(context, chain):
    first = chain.seed()
    broken = chain.seed()
    third = chain.seed()
    chain.prediction_failures[broken.id] = LedgerConnectionError("timeout")

    snapshot = await context.repository.refresh_open()

    assert snapshot.ids == (first.id, third.id)
    assert [failure.prediction_id for failure in snapshot.failures] == [broken.id]
    assert isinstance(snapshot.failures[0].cause, LedgerConnectionError)


@pytest.mark.asyncio
async def test_failed_listing_keeps_previous_content(context, chain):
    record = chain.seed()
    await context.repository.refresh_open()

    chain.call_failures["getOpenPredictions"] = LedgerConnectionError("node down")
    snapshot = await context.repository.refresh_open()

    assert snapshot.ids == (record.id,)
    assert snapshot.error == "node down"

    recovered = await context.repository.refresh_open()
    assert recovered.error is None


@pytest.mark.asyncio
async def test_refresh_replaces_view_wholesale(context, chain):
    kept = chain.seed()
    gone = chain.seed()
    await context.repository.refresh_open()

    chain.predictions[gone.id] = replace(gone, status=PredictionStatus.CANCELLED)
    chain.predictions[kept.id] = replace(kept, title="Renamed")
    snapshot = await context.repository.refresh_open()

    assert snapshot.ids == (kept.id,)
    assert snapshot.get(kept.id).title == "Renamed"
    assert snapshot.get(gone.id) is None


@pytest.mark.asyncio
async def test_matched_view_requires_privilege(context, chain):
    chain.seed(**_matched_fields())
    await context.session.connect_real()
    await context.session.wait_idle()

    snapshot = await context.repository.refresh_matched()

    assert snapshot.records == ()
    assert "getMatchedPredictions" not in [name for name, _ in chain.calls]
    await context.session.close()


@pytest.mark.asyncio
async def test_matched_view_for_privileged_identity(test_settings, chain, clock):
    context = build_client_context(test_settings, chain, FakeSigningProvider(ADMIN), clock=clock)
    matched = chain.seed(**_matched_fields())
    chain.seed()
    await context.session.connect_real()
    await context.session.wait_idle()

    snapshot = await context.repository.refresh_matched()

    assert snapshot.ids == (matched.id,)
    await context.session.close()


@pytest.mark.asyncio
async def test_owned_view_is_newest_first_and_includes_joined_records(context, chain, clock):
    now = int(clock())
    older = chain.seed(created_at=now - 500)
    joined = chain.seed(creator=BOB, created_at=now - 100, **_matched_fields(opponent=ALICE))
    chain.seed(creator=CAROL, created_at=now - 50)
    newest = chain.seed(created_at=now - 10)
    await context.session.connect_real()

    snapshot = await context.repository.refresh_owned()

    assert snapshot.ids == (newest.id, joined.id, older.id)
    await context.session.close()


@pytest.mark.asyncio
async def test_owned_view_is_empty_without_identity(context, chain):
    chain.seed()
    snapshot = await context.repository.refresh_owned()
    assert snapshot.records == ()
    assert "getUserPredictions" not in [name for name, _ in chain.calls]


@pytest.mark.asyncio
async def test_refresh_many_views_at_once(context, chain):
    chain.seed()
    await context.session.connect_real()

    snapshots = await context.repository.refresh([ViewName.OPEN, ViewName.OWNED])

    assert set(snapshots) == {ViewName.OPEN, ViewName.OWNED}
    assert len(snapshots[ViewName.OPEN].records) == 1
    assert len(snapshots[ViewName.OWNED].records) == 1
    await context.session.close()


@pytest.mark.asyncio
async def test_repository_follows_session_lifecycle(context, chain):
    mine = chain.seed()
    repository = context.repository
    repository.start()

    await context.session.connect_real()
    await repository.wait_idle()
    await context.session.wait_idle()
    assert repository.owned.ids == (mine.id,)

    await context.session.disconnect()
    assert repository.owned.records == ()
    assert repository.matched.records == ()

    await repository.close()
    await context.session.close()


@pytest.mark.asyncio
async def test_identity_change_refetches_owned_view(context, chain, provider):
    chain.seed()
    bobs = chain.seed(creator=BOB)
    repository = context.repository
    repository.start()
    await context.session.connect_real()
    await repository.wait_idle()

    provider.switch_account(BOB)
    await repository.wait_idle()

    assert repository.owned.ids == (bobs.id,)
    await repository.close()
    await context.session.close()


@pytest.mark.asyncio
async def test_explicit_zero_limit_is_an_empty_page(context, chain):
    chain.seed()

    snapshot = await context.repository.refresh_open(limit=0)

    assert snapshot.records == ()
    assert ("getOpenPredictions", (0, 0)) in chain.calls


@pytest.mark.asyncio
async def test_open_view_is_polled_while_connected(test_settings, chain, clock):
    polling = test_settings.model_copy(update={"open_refresh_interval_seconds": 0.01})
    context = build_client_context(polling, chain, FakeSigningProvider(ALICE), clock=clock)
    repository = context.repository
    repository.start()
    await context.session.connect_real()

    fresh = chain.seed(creator=BOB)
    for _ in range(200):
        if fresh.id in repository.open.ids:
            break
        await asyncio.sleep(0.01)
    assert fresh.id in repository.open.ids

    await context.session.disconnect()
    await repository.wait_idle()
    late = chain.seed(creator=BOB)
    await asyncio.sleep(0.05)
    assert late.id not in repository.open.ids

    await repository.close()
    await context.session.close()


@pytest.mark.asyncio
async def test_matched_view_follows_privilege_through_the_session(test_settings, chain, clock):
    matched = chain.seed(**_matched_fields())
    context = build_client_context(test_settings, chain, FakeSigningProvider(ADMIN), clock=clock)
    repository = context.repository
    repository.start()

    await context.session.connect_real()
    await context.session.wait_idle()
    await repository.wait_idle()

    assert context.session.state.is_admin
    assert repository.matched.ids == (matched.id,)

    chain.admin = CAROL
    await context.session.refresh_balances()
    await repository.wait_idle()

    assert repository.matched.records == ()
    await repository.close()
    await context.session.close()
