import logging
import math

from gevent.pool import Pool

from desk_scripts.ZendeskApiWrapper import APIError
from desk_scripts.bulk_actions import delete_in_batches, search_all, unset_flag
from desk_scripts.progress import DotProgress
from tests.fakes import FakeResponse, FakeZendesk, make_orgs, make_users


class Recorder:
    def __init__(self, fail_on=()):
        self.batches = []
        self.fail_on = set(fail_on)

    def __call__(self, batch):
        self.batches.append([r['id'] for r in batch])
        if len(self.batches) in self.fail_on:
            raise APIError(FakeResponse(400, text='{"description": "Bad batch"}'))


def test_search_all_fetches_each_page_once(policy):
    api = FakeZendesk(organizations=make_orgs(950), per_page=100)

    orgs = search_all(api, 'organization', 'created>2019-07-20', policy, Pool(3))

    pages = [page for kind, query, page in api.search_calls]
    assert sorted(pages) == list(range(1, 11))
    assert pages.count(1) == 1
    assert [o['id'] for o in orgs] == list(range(1, 951))


def test_search_all_single_page(policy):
    api = FakeZendesk(organizations=make_orgs(42))

    orgs = search_all(api, 'organization', 'created>2019-07-20', policy)

    assert len(orgs) == 42
    assert len(api.search_calls) == 1


def test_search_all_nothing_found(policy):
    api = FakeZendesk()

    assert search_all(api, 'user', 'created>2019-07-20', policy) == []
    assert len(api.search_calls) == 1


def test_search_all_skips_page_that_keeps_failing(policy, clock, caplog):
    api = FakeZendesk(users=make_users(300), per_page=100)
    api.failing_pages.add(('user', 2))

    users = search_all(api, 'user', 'created>2019-07-20', policy)

    assert [u['id'] for u in users] == list(range(1, 101)) + list(range(201, 301))
    assert len(clock.sleeps) == 9
    assert 'Could not get user page 2 of 3' in caplog.text


def test_search_all_reports_progress_per_page(policy):
    api = FakeZendesk(organizations=make_orgs(250), per_page=100)
    progress = DotProgress(stream=_Sink())

    search_all(api, 'organization', 'created>2019-07-20', policy, progress=progress)

    assert progress.count == 3


def test_delete_in_batches_partitions_records(policy):
    records = make_users(1234)
    delete = Recorder()

    summary = delete_in_batches(records, delete, policy)

    assert len(delete.batches) == math.ceil(1234 / 500)
    assert [len(b) for b in delete.batches] == [500, 500, 234]
    flattened = [i for batch in delete.batches for i in batch]
    assert flattened == [r['id'] for r in records]
    assert summary.deleted == 1234
    assert summary.failed_batches == 0


def test_delete_in_batches_waits_between_batches(policy, clock):
    delete_in_batches(make_users(1000), Recorder(), policy, cooldown=15, sleep=clock)

    assert clock.sleeps == [15, 15]


def test_delete_in_batches_continues_after_failed_batch(policy, caplog):
    caplog.set_level(logging.INFO)
    delete = Recorder(fail_on=[1])

    summary = delete_in_batches(make_orgs(700), delete, policy, label='organisations')

    assert len(delete.batches) == 2
    assert summary.deleted == 200
    assert summary.failed_batches == 1
    assert 'Could not delete 500 organisations (1..500)' in caplog.text
    assert 'Deleted 200 organisations' in caplog.text


def test_delete_in_batches_with_nothing_to_delete(policy):
    delete = Recorder()

    summary = delete_in_batches([], delete, policy)

    assert delete.batches == []
    assert summary.deleted == 0


def test_unset_flag_updates_only_flagged_records(policy):
    users = [
        {'id': 1, 'name': 'A', 'shared_phone_number': True},
        {'id': 2, 'name': 'B', 'shared_phone_number': False},
        {'id': 3, 'name': 'C', 'shared_phone_number': None},
    ]
    api = FakeZendesk()

    errors = unset_flag(users, 'shared_phone_number', api.update_user, policy)

    assert errors == {}
    assert api.updates == [{'id': 1, 'name': 'A', 'shared_phone_number': False}]
    assert users[0]['shared_phone_number'] is True


def test_unset_flag_collects_errors_and_carries_on(policy):
    users = [
        {'id': 1, 'name': 'A', 'shared_phone_number': True},
        {'id': 2, 'name': 'B', 'shared_phone_number': True},
    ]
    api = FakeZendesk()
    api.failing_updates[1] = APIError(
        FakeResponse(422, text='{"details": {"phone": [{"description": "Phone is taken"}]}}')
    )

    errors = unset_flag(users, 'shared_phone_number', api.update_user, policy)

    assert errors == {1: (users[0], 'Phone is taken')}
    assert [u['id'] for u in api.updates] == [2]


def test_unset_flag_records_unexpected_errors_and_carries_on(policy, clock):
    users = [
        {'id': 1, 'name': 'A', 'shared_phone_number': True},
        {'id': 2, 'name': 'B', 'shared_phone_number': True},
        {'id': 3, 'name': 'C', 'shared_phone_number': True},
    ]
    api = FakeZendesk()
    api.failing_updates[1] = AttributeError("'list' object has no attribute 'get'")
    api.failing_updates[2] = ValueError('Expecting value: line 1 column 1 (char 0)')

    errors = unset_flag(users, 'shared_phone_number', api.update_user, policy)

    assert errors == {
        1: (users[0], "'list' object has no attribute 'get'"),
        2: (users[1], 'Expecting value: line 1 column 1 (char 0)'),
    }
    assert [u['id'] for u in api.updates] == [3]
    assert clock.sleeps == []


def test_unset_flag_advances_progress_for_every_record(policy):
    users = [
        {'id': 1, 'name': 'A', 'shared_phone_number': True},
        {'id': 2, 'name': 'B', 'shared_phone_number': False},
    ]
    progress = DotProgress(stream=_Sink())

    unset_flag(users, 'shared_phone_number', FakeZendesk().update_user, policy, progress)

    assert progress.count == 2


class _Sink:
    def write(self, text):
        pass

    def flush(self):
        pass
