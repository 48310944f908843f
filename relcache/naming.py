"""Naming convention parser for server group names.

Server groups are named ``<app>[-<stack>[-<detail>]][-v<NNN>]``. The
cluster is the name without the ``-vNNN`` push sequence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

PUSH_PATTERN = re.compile(r"^(?P<cluster>.+?)-v(?P<sequence>\d{3,})$")


@dataclass(frozen=True)
class Names:
    group: str
    cluster: str
    app: str
    stack: Optional[str] = None
    detail: Optional[str] = None
    sequence: Optional[int] = None

    @classmethod
    def parse(cls, name: str) -> "Names":
        """Split a server group name into its naming-convention parts."""
        if not name:
            raise ValueError("Cannot parse an empty name")

        cluster = name
        sequence = None
        match = PUSH_PATTERN.match(name)
        if match:
            cluster = match.group("cluster")
            sequence = int(match.group("sequence"))

        app, _, rest = cluster.partition("-")
        stack, _, detail = rest.partition("-")

        return cls(
            group=name,
            cluster=cluster,
            app=app or cluster,
            stack=stack or None,
            detail=detail or None,
            sequence=sequence,
        )
