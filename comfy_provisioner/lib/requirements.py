from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from packaging.requirements import InvalidRequirement, Requirement

logger = logging.getLogger(__name__)


def requirement_names(path: str) -> List[str]:
    """Distribution names listed in a pip requirements file.

    Options (-r, --index-url, ...), URLs and unparseable lines are skipped.
    """

    p = Path(path)
    if not p.is_file():
        return []

    names: List[str] = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        try:
            req = Requirement(line)
        except InvalidRequirement:
            logger.debug("Skipping requirement line %r", line)
            continue
        if req.marker is not None and not req.marker.evaluate():
            continue
        if req.name not in names:
            names.append(req.name)
    return names
