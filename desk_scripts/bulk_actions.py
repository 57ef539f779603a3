import logging
import time
from collections import namedtuple

from gevent.pool import Pool
from requests.exceptions import RequestException

from desk_scripts.ZendeskApiWrapper import APIError
from desk_scripts.resilience import describe_error

logger = logging.getLogger(__name__)

BATCH_SIZE = 500
DEFAULT_POOL_SIZE = 10

DeleteSummary = namedtuple('DeleteSummary', ['deleted', 'failed_batches'])


def search_all(api, kind, query, policy, pool=None, progress=None):
    """
    Get every `kind` record matching `query`.

    The first page tells us how many pages there are; the rest are fetched in parallel on the
    gevent pool and appended in page order. A page that still fails once the policy gives up is
    logged and left out of this pass.
    """
    first = policy.execute(api.search, kind, query, page=1)
    if not first.results:
        return []

    logger.info(f'Retrieving details of {first.count} {kind} records')
    if progress is not None:
        progress.advance()

    def _get_page(page):
        captured = policy.execute_and_capture(api.search, kind, query, page=page)
        if progress is not None:
            progress.advance()
        if captured.exception is not None:
            logger.error(
                f'Could not get {kind} page {page} of {first.total_pages}: {captured.exception}'
            )
            return []
        return captured.result.results

    pool = pool or Pool(DEFAULT_POOL_SIZE)
    records = list(first.results)
    for page_results in pool.map(_get_page, range(2, first.total_pages + 1)):
        records.extend(page_results)
    return records


def batches(records, size=BATCH_SIZE):
    for start in range(0, len(records), size):
        yield records[start:start + size]


def delete_in_batches(
    records,
    delete,
    policy,
    progress=None,
    batch_size=BATCH_SIZE,
    cooldown=0,
    sleep=None,
    label='records',
):
    """
    Call `delete(batch)` once per batch of `batch_size` records, one batch at a time.

    Some Zendesk endpoints need time to drain their job queue, `cooldown` seconds are waited
    after every batch for those. Failed batches are logged and counted but don't stop the run.
    """
    sleep = sleep or time.sleep
    records = list(records)
    deleted = 0
    failed_batches = 0
    for batch in batches(records, batch_size):
        try:
            policy.execute(delete, batch)
        except (APIError, RequestException) as e:
            failed_batches += 1
            logger.error(
                f'Could not delete {len(batch)} {label} ({batch[0]["id"]}..{batch[-1]["id"]}): {e}'
            )
        else:
            deleted += len(batch)
        if cooldown:
            sleep(cooldown)
        if progress is not None:
            progress.advance()

    if progress is not None:
        progress.finish()
    logger.info(f'Deleted {deleted} {label}')
    if failed_batches:
        logger.warning(f'{failed_batches} batches of {label} could not be deleted')
    return DeleteSummary(deleted, failed_batches)


def unset_flag(records, field, update, policy, progress=None):
    """
    Submit a copy of every record whose `field` is true with the field set to false.

    Returns a dict of record id -> (record, error description) for the updates that failed.
    """
    errors = {}
    for record in records:
        if progress is not None:
            progress.advance(record.get('name'))
        if record.get(field) is not True:
            continue
        try:
            policy.execute(update, dict(record, **{field: False}))
        except Exception as e:
            errors[record['id']] = (record, describe_error(e))

    if progress is not None:
        progress.finish()
    return errors
