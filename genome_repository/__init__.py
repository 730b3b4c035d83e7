"""Genomic file-metadata repository: reconcile, identify and publish."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("genome-repository")
except PackageNotFoundError:
    __version__ = "0.0.0"
