import logging

from desk_scripts.bulk_actions import delete_in_batches, search_all
from desk_scripts.progress import DotProgress, countdown

logger = logging.getLogger(__name__)

ORGANIZATION = 'organization'
USER = 'user'
END_USER_ROLE = 'end-user'

# Zendesk needs time to work through queued user deletions before it takes the next batch.
USER_DELETE_COOLDOWN = 15
DEFAULT_PAUSE_SECONDS = 240


def by_name(record):
    return record.get('name') or ''


def clean_desk(api, policy, query, pool=None, confirmed=True, sleep=None, stream=None):
    """
    Delete every organization and end-user matching `query`.

    Returns the number of organizations and users found.
    """
    logger.info('Searching for orgs')
    progress = DotProgress(stream)
    orgs = sorted(search_all(api, ORGANIZATION, query, policy, pool, progress), key=by_name)
    progress.finish()

    if confirmed:
        logger.info(f'Deleting {len(orgs)} orgs')
        delete_in_batches(
            orgs,
            api.bulk_delete_organizations,
            policy,
            DotProgress(stream),
            sleep=sleep,
            label='organisations',
        )
    else:
        logger.info(f'Would delete {len(orgs)} orgs')

    logger.info('Searching for users')
    progress = DotProgress(stream)
    users = sorted(
        (
            user
            for user in search_all(api, USER, query, policy, pool, progress)
            if user.get('role') == END_USER_ROLE
        ),
        key=by_name,
    )
    progress.finish()

    if confirmed:
        logger.info(f'Deleting {len(users)} users')
        delete_in_batches(
            users,
            api.bulk_delete_users,
            policy,
            DotProgress(stream),
            cooldown=USER_DELETE_COOLDOWN,
            sleep=sleep,
            label='users',
        )
    else:
        logger.info(f'Would delete {len(users)} users')

    return len(orgs), len(users)


def remaining_counts(api, policy, query):
    """What Zendesk search still reports for the records a delete pass goes after."""
    # end-users only, the count the delete pass can bring to zero
    users = policy.execute(api.search, USER, f'{query} role:{END_USER_ROLE}').count
    logger.info(f'Zendesk reports {users} users')
    orgs = policy.execute(api.search, ORGANIZATION, query).count
    logger.info(f'Zendesk reports {orgs} organisations')
    return orgs, users


def report_desk(
    api,
    policy,
    query,
    pool=None,
    pause_seconds=DEFAULT_PAUSE_SECONDS,
    max_passes=None,
    sleep=None,
    stream=None,
    fd=None,
):
    """
    Run delete passes until Zendesk reports nothing left to delete.

    Search results lag behind deletions, so after each pass we ask for fresh counts and, if
    anything is left, wait `pause_seconds` and go again. There is no limit on the number of
    passes unless `max_passes` is given. Returns the number of passes made.
    """
    passes = 0
    while True:
        clean_desk(api, policy, query, pool=pool, sleep=sleep, stream=stream)
        passes += 1

        orgs, users = remaining_counts(api, policy, query)
        if orgs == 0 and users == 0:
            logger.info(f'Nothing left to delete after {passes} passes')
            return passes

        if max_passes is not None and passes >= max_passes:
            logger.warning(
                f'Stopping after {passes} passes with {orgs} organisations and {users} users left'
            )
            return passes

        countdown(pause_seconds, sleep=sleep, fd=fd)
