"""
Notifer Variable Expansion — ${NAME} / $NAME substitution for free-text fields.

The resolver takes any ``Callable[[str], str]`` as its expand function; this
module provides the one the CLI uses, backed by the build environment.
Unknown references are left as written, the way the build host does it.

Usage:
    expand = EnvVarExpander({"BRANCH_NAME": "main"})
    expand("deploy ${BRANCH_NAME}")   # → "deploy main"
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, Mapping, Optional

logger = logging.getLogger("notifer.engine.environment")

_REFERENCE = re.compile(r"\$\{(\w+)\}|\$(\w+)")

Expander = Callable[[str], str]


def identity(text: str) -> str:
    return text


class EnvVarExpander:
    """
    Callable expander over a fixed variable mapping.

    Args:
        variables: Name → value mapping. If None, a copy of os.environ is taken
            at construction so later environment changes do not leak in.
    """

    def __init__(self, variables: Optional[Mapping[str, str]] = None):
        self._variables = dict(os.environ if variables is None else variables)

    def __call__(self, text: str) -> str:
        return self.expand(text)

    def expand(self, text: str) -> str:
        if not text or "$" not in text:
            return text

        def replacer(match):
            name = match.group(1) or match.group(2)
            if name in self._variables:
                return str(self._variables[name])
            logger.debug(f"Unresolved variable reference left as-is: {match.group(0)}")
            return match.group(0)

        return _REFERENCE.sub(replacer, text)

    @property
    def variables(self) -> Mapping[str, str]:
        return dict(self._variables)
