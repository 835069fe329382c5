from importlib.metadata import version

DIST_NAME = "configsync"
__version__ = version(DIST_NAME)
