#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Path Resolution Module for statichttp
-------------------------------------
Maps request targets to files under the document root.
"""

import os
import stat

from .utils import is_path_within


INDEX_FILE = 'index.html'


class PathResolver:
    """
    Resolves request targets against a document root.

    Resolution is lexical: the target is joined to the root and normalized,
    then required to stay inside the root and name a regular file.
    """

    def __init__(self, document_root):
        self.document_root = document_root
        self.absolute_root = os.path.abspath(document_root)

    def resolve(self, target):
        """
        Resolve a request target.

        Args:
            target: Request target, starting with "/", as decoded from the
                wire (ISO-8859-1)

        Returns:
            tuple: (absolute_path, found). absolute_path is None when it
            could not be computed.
        """
        if target.endswith('/'):
            target = target + INDEX_FILE

        try:
            # Wire bytes back to a filesystem name, so UTF-8 targets match
            target = os.fsdecode(target.encode('iso-8859-1'))
            file_path = os.path.normpath(os.path.join(self.document_root, target.lstrip('/')))
            file_path = os.path.abspath(file_path)
        except ValueError:
            return None, False

        if not is_path_within(self.absolute_root, file_path):
            return file_path, False

        return file_path, self._is_regular_file(file_path)

    @staticmethod
    def _is_regular_file(path):
        try:
            return stat.S_ISREG(os.stat(path).st_mode)
        except (OSError, ValueError):
            return False
