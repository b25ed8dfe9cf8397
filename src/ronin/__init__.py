"""
Ronin - streaming, tool-augmented conversation engine.

Consumes chunked model output, reconstructs tool calls, executes them against
connected tool hosts behind an approval gate, and loops until the model stops
calling tools.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("ronin-engine")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Ronin Contributors"

from ronin.config import Settings  # noqa: E402

__all__ = ["__version__", "__version_info__", "Settings"]
