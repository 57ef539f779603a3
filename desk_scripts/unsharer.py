import csv
import logging

from desk_scripts.bulk_actions import search_all, unset_flag
from desk_scripts.cleaner import USER
from desk_scripts.progress import BarProgress

logger = logging.getLogger(__name__)

SHARED_PHONE_NUMBER = 'shared_phone_number'


def _dry_run_update(user):
    logger.info(f'Would clear {SHARED_PHONE_NUMBER} on {user["id"]} {user.get("name") or ""}')


def unshare_desk(api, policy, query, pool=None, confirmed=True, fd=None):
    """Clear `shared_phone_number` on every user matching `query` that has it set."""
    logger.info('Searching for users')
    users = search_all(api, USER, query, policy, pool)
    logger.info(f'Fixing {len(users)} users')

    errors = {}
    if users:
        update = api.update_user if confirmed else _dry_run_update
        errors = unset_flag(
            users,
            SHARED_PHONE_NUMBER,
            update,
            policy,
            BarProgress(len(users), 'Users: ', fd=fd),
        )

    if errors:
        logger.error(f'There were {len(errors)} errors...')
        for user_id, (user, description) in errors.items():
            logger.error(f'{user_id} {user.get("name") or ""}: {description}')
    return errors


def write_errors_csv(errors, path):
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, ['User ID', 'Name', 'Email', 'Error'])
        writer.writeheader()
        for user_id, (user, description) in errors.items():
            writer.writerow(
                {
                    'User ID': user_id,
                    'Name': user.get('name') or '',
                    'Email': user.get('email') or '',
                    'Error': description,
                }
            )
