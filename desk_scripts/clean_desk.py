#!/usr/bin/env python

import gevent.monkey

gevent.monkey.patch_all()

import argparse
import logging
import sys

from gevent.pool import Pool

from desk_scripts.ZendeskApiWrapper import ZendeskApiWrapper
from desk_scripts.cleaner import DEFAULT_PAUSE_SECONDS, clean_desk, report_desk
from desk_scripts.cli import (
    add_common_arguments,
    configure_logging,
    created_after_query,
    settings_from_args,
)
from desk_scripts.resilience import RetryPolicy, is_transient
from desk_scripts.settings import SettingsError


def build_parser():
    parser = argparse.ArgumentParser(
        description='Delete Zendesk organizations and end-users created after a given date. '
        'Unless --no-report is given, keeps deleting until Zendesk reports nothing left.'
    )
    add_common_arguments(parser)
    parser.add_argument(
        '--no-report',
        action='store_true',
        help='Make a single delete pass instead of repeating until nothing is left.',
    )
    parser.add_argument(
        '--pause-seconds',
        type=int,
        default=DEFAULT_PAUSE_SECONDS,
        help=f'Pause between delete passes (default {DEFAULT_PAUSE_SECONDS}).',
    )
    parser.add_argument(
        '--max-passes',
        type=int,
        default=None,
        help='Give up after this many delete passes. Unlimited by default.',
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.confirmed)

    try:
        settings = settings_from_args(args, 'Settings')
    except SettingsError as e:
        parser.error(str(e))

    api = ZendeskApiWrapper(settings.url, settings.username, settings.password)
    policy = RetryPolicy(is_transient)
    pool = Pool(args.pool_size)
    query = created_after_query(args.created_after)
    logging.debug(f'query: {query}')

    try:
        if args.confirmed and not args.no_report:
            report_desk(
                api,
                policy,
                query,
                pool=pool,
                pause_seconds=args.pause_seconds,
                max_passes=args.max_passes,
            )
        else:
            if not args.confirmed:
                logging.info(
                    'This is a dry run, nothing is deleted. Use the --confirmed flag to delete records.'
                )
            clean_desk(api, policy, query, pool=pool, confirmed=args.confirmed)
    except Exception as e:
        logging.exception(f'Stopped on error: {e}')
        sys.exit(1)


if __name__ == '__main__':
    main()
