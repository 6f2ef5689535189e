"""
Tests for SettlementWatch, the polling observer behind the live endpoints
"""
import itertools

from django.test import TestCase

from splits.models import Receipt
from splits.repositories import ClaimRepository
from splits.services import SettlementService
from splits.services.snapshot_service import SNAPSHOT_ATTEMPTS

from .helpers import ALICE, BOB, HOST, create_receipt


class FakeSleep:
    """Records sleeps and runs a queued action on each; fails if polling never ends"""

    def __init__(self, *actions, limit=20):
        self.actions = list(actions)
        self.calls = 0
        self.limit = limit

    def __call__(self, seconds):
        self.calls += 1
        if self.calls > self.limit:
            raise AssertionError("watch kept polling without a change")
        if self.actions:
            self.actions.pop(0)()


class FakeClock:
    def __init__(self, step=1.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class ObserveSettlementTests(TestCase):
    def setUp(self):
        self.service = SettlementService()
        self.code = create_receipt(self.service)

    def watch(self, identity=ALICE, **options):
        options.setdefault('poll_interval', 0)
        return self.service.observe_settlement(self.code, identity, **options)

    def test_unavailable_receipts(self):
        self.assertIsNone(self.service.observe_settlement('12345', ALICE))
        self.assertIsNone(self.service.observe_settlement('000000' if self.code != '000000' else '000001', ALICE))
        self.service.archive('dinner-1', HOST)
        self.assertIsNone(self.service.observe_settlement(self.code, ALICE))

    def test_yields_current_snapshot_immediately(self):
        watch = self.watch()

        snapshot = next(iter(watch))

        self.assertEqual(snapshot.code, self.code)
        self.assertEqual(snapshot.viewer_participant_key, ALICE.participant_key)
        self.assertEqual(snapshot.item('pizza').remaining_quantity, 2)

    def test_yields_again_after_each_change(self):
        sleep = FakeSleep(lambda: self.service.adjust_claim(self.code, 'pizza', BOB, 1))
        stream = iter(self.watch(sleep=sleep))

        first = next(stream)
        second = next(stream)

        self.assertGreater(second.revision, first.revision)
        self.assertEqual(second.item('pizza').claimed_quantity, 1)
        self.assertEqual(first.item('pizza').claimed_quantity, 0)
        self.assertEqual(sleep.calls, 1)

    def test_snapshots_are_immutable(self):
        snapshot = next(iter(self.watch()))
        with self.assertRaises(Exception):
            snapshot.revision = 99

    def test_archive_ends_stream(self):
        sleep = FakeSleep(lambda: self.service.archive('dinner-1', HOST))
        stream = iter(self.watch(sleep=sleep))

        next(stream)
        self.assertIsNone(next(stream))
        with self.assertRaises(StopIteration):
            next(stream)

    def test_destroy_ends_stream(self):
        stream = iter(self.watch())
        next(stream)

        self.service.destroy('dinner-1', HOST)

        self.assertIsNone(next(stream))

    def test_restartable_and_closable(self):
        watch = self.watch()
        first = next(iter(watch))
        again = next(iter(watch))
        self.assertEqual(first, again)

        with watch:
            pass
        self.assertTrue(watch.closed)
        with self.assertRaises(StopIteration):
            next(iter(watch))

    def test_wait_for_change(self):
        watch = self.watch(clock=FakeClock(), sleep=FakeSleep(
            lambda: self.service.adjust_claim(self.code, 'salad', ALICE, 1)
        ))
        current = watch.current()

        self.assertEqual(watch.wait_for_change(None, timeout=10), current)
        self.assertEqual(watch.wait_for_change(current.revision - 1, timeout=10).revision, current.revision)

        changed = watch.wait_for_change(current.revision, timeout=10)
        self.assertGreater(changed.revision, current.revision)
        self.assertEqual(changed.viewer_settlement.item_subtotal, 10)

    def test_wait_for_change_times_out(self):
        watch = self.watch(clock=FakeClock(step=5.0), sleep=FakeSleep())
        current = watch.current()

        result = watch.wait_for_change(current.revision, timeout=10)

        self.assertEqual(result.revision, current.revision)

    def test_wait_for_change_on_archived_receipt(self):
        watch = self.watch()
        self.service.archive('dinner-1', HOST)
        self.assertIsNone(watch.wait_for_change(None, timeout=0))
        self.assertIsNone(watch.current())


class InterleavingClaimRepository(ClaimRepository):
    """Runs a write after participants are read but before claims are"""

    def __init__(self):
        self.write = None
        self.pending = 0

    def list_for_receipt(self, receipt_id):
        if self.write is not None and self.pending > 0:
            self.pending -= 1
            self.write()
        return super().list_for_receipt(receipt_id)


class SnapshotConsistencyTests(TestCase):
    def setUp(self):
        self.claims = InterleavingClaimRepository()
        self.service = SettlementService(claims=self.claims)
        self.code = create_receipt(self.service)
        self.service.adjust_claim(self.code, 'salad', ALICE, 1)

    def current_revision(self):
        return Receipt.objects.get(share_code=self.code).revision

    def test_write_during_build_is_not_mixed_in(self):
        self.claims.write = lambda: self.service.remove_participant(self.code, HOST, ALICE.participant_key)
        self.claims.pending = 1

        snapshot = self.service.get_snapshot(self.code, HOST)

        self.assertEqual(self.claims.pending, 0)
        self.assertIsNone(snapshot.participant(ALICE.participant_key))
        self.assertEqual(snapshot.item('salad').remaining_quantity, 1)
        self.assertEqual(snapshot.revision, self.current_revision())

    def test_repeated_writes_fall_back_to_locked_build(self):
        toggles = itertools.cycle([True, False])
        self.claims.write = lambda: self.service.set_submission_status(self.code, BOB, next(toggles))
        self.claims.pending = SNAPSHOT_ATTEMPTS

        snapshot = self.service.get_snapshot(self.code, HOST)

        self.assertEqual(self.claims.pending, 0)
        self.assertEqual(snapshot.revision, self.current_revision())
        self.assertTrue(snapshot.participant(BOB.participant_key).is_submitted)

    def test_archived_during_build(self):
        self.claims.write = lambda: self.service.archive('dinner-1', HOST)
        self.claims.pending = 1

        self.assertIsNone(self.service.get_snapshot(self.code, HOST))
