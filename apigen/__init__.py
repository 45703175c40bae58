"""apigen - schema compiler for zero-copy binary protocol codecs."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("apigen")
except PackageNotFoundError:
    __version__ = "(local)"
