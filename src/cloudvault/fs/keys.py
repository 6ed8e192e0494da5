"""Metadata key space.

Every record lives under one of these prefixes; the helpers build full keys
so no module spells a prefix by hand.
"""

from __future__ import annotations

FILE_PREFIX = "file:"
FOLDER_PREFIX = "folder:"
SHARE_PREFIX = "share:"
FOLDER_SHARE_PREFIX = "foldershare:"
FOLDER_EXCLUDE_PREFIX = "foldershare-exclude:"
FOLDER_LINK_PREFIX = "foldersharelink:"
FOLDER_LINK_META_PREFIX = "foldersharelink:meta:"
SESSION_PREFIX = "session:"

STATS_TOTAL_FILES = "stats:totalFiles"
STATS_TOTAL_SIZE = "stats:totalSize"


def file_key(file_id: str) -> str:
    return FILE_PREFIX + file_id


def folder_key(path: str) -> str:
    return FOLDER_PREFIX + path


def share_key(token: str) -> str:
    return SHARE_PREFIX + token


def folder_share_key(path: str) -> str:
    return FOLDER_SHARE_PREFIX + path


def folder_exclude_key(path: str) -> str:
    return FOLDER_EXCLUDE_PREFIX + path


def folder_link_key(token: str) -> str:
    return FOLDER_LINK_PREFIX + token


def folder_link_meta_key(path: str) -> str:
    return FOLDER_LINK_META_PREFIX + path


def session_key(session_id: str) -> str:
    return SESSION_PREFIX + session_id


def strip_prefix(key: str, prefix: str) -> str:
    return key[len(prefix) :]
