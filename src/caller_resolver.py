"""
Rolling Logger Call Sites
Resolve the `file:line function()` string for the code that issued a log call.
"""

import os
import sys
from typing import Dict, Iterable, Optional, Tuple


class CallerResolver:
    """Capability interface: describe the call site of the current log call."""

    def resolve(self) -> str:
        raise NotImplementedError


class FrameCallerResolver(CallerResolver):
    """
    Walk interpreter frames past the logger's own modules.

    Results are cached per call site, keyed by the code object and bytecode
    offset of the calling frame rather than by parsing a formatted stack.
    """

    def __init__(self, skip_files: Optional[Iterable[str]] = None):
        self._skip_files = {os.path.normcase(os.path.abspath(__file__))}
        for path in skip_files or ():
            self._skip_files.add(os.path.normcase(os.path.abspath(path)))
        self._cache: Dict[Tuple[object, int], str] = {}

    def _is_internal(self, filename: str) -> bool:
        return os.path.normcase(os.path.abspath(filename)) in self._skip_files

    def resolve(self) -> str:
        frame = sys._getframe(1)
        while frame is not None and self._is_internal(frame.f_code.co_filename):
            frame = frame.f_back
        if frame is None:
            return ""

        key = (frame.f_code, frame.f_lasti)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        code = frame.f_code
        function = getattr(code, "co_qualname", code.co_name)
        location = f"{code.co_filename}:{frame.f_lineno} {function}()"
        self._cache[key] = location
        return location

    def cache_size(self) -> int:
        return len(self._cache)
