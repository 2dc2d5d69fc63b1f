# -*- coding: utf-8 -*-
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("django-modular-forms")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
