import argparse
import logging

from dateutil.parser import parse as parse_date

from desk_scripts.bulk_actions import DEFAULT_POOL_SIZE
from desk_scripts.settings import DEFAULT_ENVIRONMENT, load_settings

DEFAULT_CREATED_AFTER = '2019-07-20'


def created_after(value):
    """argparse type for the creation date lower bound, normalised to yyyy-mm-dd."""
    try:
        return parse_date(value).date().isoformat()
    except (ValueError, OverflowError):
        raise argparse.ArgumentTypeError(f'invalid date: {value!r}')


def created_after_query(date):
    return f'created>{date}'


def add_common_arguments(parser):
    parser.add_argument('--url', help='Zendesk account URL, e.g. https://acme.zendesk.com')
    parser.add_argument('--username', '-u', help='Zendesk user name (email, or email/token for API tokens)')
    parser.add_argument('--password', '-p', help='Zendesk password or API token')
    parser.add_argument(
        '--settings-dir',
        default='.',
        help='Folder holding appsettings.json and appsettings.<environment>.json',
    )
    parser.add_argument(
        '--environment',
        default=DEFAULT_ENVIRONMENT,
        help='Settings overlay to apply on top of appsettings.json',
    )
    parser.add_argument(
        '--created-after',
        type=created_after,
        default=DEFAULT_CREATED_AFTER,
        help=f'Only touch records created after this date (default {DEFAULT_CREATED_AFTER}).',
    )
    parser.add_argument(
        '--pool-size',
        type=int,
        default=DEFAULT_POOL_SIZE,
        help='How many search pages to fetch in parallel.',
    )
    parser.add_argument(
        '--confirmed',
        action='store_true',
        help='Confirm making changes. Otherwise this script is not going to modify any data.',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Increase logging verbosity.')


def settings_from_args(args, section):
    return load_settings(
        section,
        directory=args.settings_dir,
        environment=args.environment,
        overrides={
            'username': args.username,
            'password': args.password,
            'url': args.url,
        },
    )


def configure_logging(verbose=False, confirmed=True):
    log_format = '[%(asctime)s] %(levelname)s %(message)s'
    if not confirmed:
        log_format = f'DRY RUN: {log_format}'
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=log_format)
