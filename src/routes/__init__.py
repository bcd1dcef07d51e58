from .notifications import *  # noqa
