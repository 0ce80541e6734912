#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command line entry point: python -m statichttp
"""

import sys
import argparse

from .server import WebServer


def build_parser():
    parser = argparse.ArgumentParser(description='statichttp static file server')

    # Basic server options
    parser.add_argument('-H', '--host', type=str, help='Host address to bind to')
    parser.add_argument('-p', '--port', type=int, help='Port to listen on')
    parser.add_argument('-d', '--document-root', type=str, help='Document root directory')
    parser.add_argument('-c', '--config', type=str, help='Path to configuration file')

    # Logging options
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')
    parser.add_argument('--log-file', type=str, help='Path to log file')
    parser.add_argument('--no-color', action='store_true', help='Disable colored logging')

    # Connection options
    parser.add_argument('--idle-timeout', type=float, help='Seconds to wait for each request')
    parser.add_argument('--chunk-size', type=int, help='Bytes per body write')
    parser.add_argument('--connection-queue', type=int, help='Listen backlog')
    parser.add_argument('--max-line-length', type=int, help='Longest accepted request or header line in bytes')

    return parser


def main(argv=None):
    """
    Parse arguments, start the server and block until it stops.

    Returns:
        int: Process exit status
    """
    args = build_parser().parse_args(argv)

    # Only pass options that were given so the config file can supply the rest
    config_args = {k: v for k, v in vars(args).items() if v is not None and k != 'config'}
    if config_args.pop('no_color', False):
        config_args['colored_logging'] = False

    server = WebServer(config_file=args.config, **config_args)
    if not server.start():
        return 1

    server.install_signal_handlers()
    server.wait_for_shutdown()
    return 0


if __name__ == '__main__':
    sys.exit(main())
