#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
statichttp
----------
A small HTTP/1.1 static file server built on Python's socket library.

Features:
- GET requests for files under a document root
- Strict request-line and header validation
- Persistent connections with an idle timeout
- Deterministic responses (headers sorted by name)
- One session thread per connection
"""

__version__ = '1.0.0'

from .server import WebServer, ServerSetupError
from .config import ServerConfig
from .handler import ConnectionSession, RequestHandler
from .request import ErrorKind, LineReader, ParseError, Request, parse_request
from .resolver import PathResolver
from .response import BodyStreamError, Response, ResponseBuilder, ResponseWriter
from .utils import setup_logging

__all__ = [
    'WebServer', 'ServerSetupError', 'ServerConfig',
    'ConnectionSession', 'RequestHandler',
    'ErrorKind', 'LineReader', 'ParseError', 'Request', 'parse_request',
    'PathResolver',
    'BodyStreamError', 'Response', 'ResponseBuilder', 'ResponseWriter',
    'setup_logging',
]
