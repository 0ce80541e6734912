#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
statichttp
----------
Static file HTTP/1.1 server. This is the main entry point for the server.
"""

import sys

from statichttp.__main__ import main


if __name__ == '__main__':
    sys.exit(main())
