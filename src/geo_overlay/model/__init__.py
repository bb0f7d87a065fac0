# model/__init__.py
from .models import *  # noqa: F401,F403
from .models import __all__
