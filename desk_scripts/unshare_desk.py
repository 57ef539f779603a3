#!/usr/bin/env python

import gevent.monkey

gevent.monkey.patch_all()

import argparse
import logging
import sys

from gevent.pool import Pool

from desk_scripts.ZendeskApiWrapper import ZendeskApiWrapper
from desk_scripts.cli import (
    add_common_arguments,
    configure_logging,
    created_after_query,
    settings_from_args,
)
from desk_scripts.resilience import RetryPolicy, is_transient
from desk_scripts.settings import SettingsError
from desk_scripts.unsharer import unshare_desk, write_errors_csv


def build_parser():
    parser = argparse.ArgumentParser(
        description='Turn off "shared phone number" on Zendesk users created after a given date.'
    )
    add_common_arguments(parser)
    parser.add_argument(
        '--errors-csv',
        help='Write the users that could not be updated, with the reason, to this CSV file.',
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.confirmed)

    try:
        settings = settings_from_args(args, 'Zendesk')
    except SettingsError as e:
        parser.error(str(e))

    api = ZendeskApiWrapper(settings.url, settings.username, settings.password)
    policy = RetryPolicy(is_transient)
    pool = Pool(args.pool_size)
    query = created_after_query(args.created_after)

    try:
        errors = unshare_desk(api, policy, query, pool=pool, confirmed=args.confirmed)
        if errors and args.errors_csv:
            write_errors_csv(errors, args.errors_csv)
            logging.info(f'Errors are saved to `{args.errors_csv}`')
    except Exception as e:
        logging.exception(f'Stopped on error: {e}')
        sys.exit(1)


if __name__ == '__main__':
    main()
