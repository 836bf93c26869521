"""Xamarin Builder - build every project in a Xamarin solution.

This package orchestrates msbuild/xbuild over the app projects of a solution
and works out which files on disk are the artifacts that run produced.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
