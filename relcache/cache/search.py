"""Glob matching over cache identifiers.

Only ``*`` is special: it matches any substring, including the empty
one and the key delimiter. Everything else matches literally and the
whole identifier must match.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Pattern, Set

from relcache.constants import KEY_WILDCARD


def glob_to_regex(pattern: str) -> str:
    """Translate a glob into an anchored regular expression string.

    Example:
        >>> glob_to_regex("acct:region:app*")
        '^acct:region:app.*$'
    """
    return "^" + ".*".join(re.escape(part) for part in pattern.split(KEY_WILDCARD)) + "$"


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> Pattern[str]:
    return re.compile(glob_to_regex(pattern), re.DOTALL)


def matches_glob(pattern: str, value: str) -> bool:
    return compile_glob(pattern).match(value) is not None


def filter_glob(pattern: str, values: Iterable[str]) -> Set[str]:
    regex = compile_glob(pattern)
    return {v for v in values if regex.match(v)}
