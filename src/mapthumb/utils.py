"""Small helpers shared across the package."""
from . import config


def vprint(text, level=0):
    """Print text if verbose mode is enabled.

    Parameters
    ----------
    text : str
        Text to print.
    level : int, optional
        Messages with a level above the configured verbosity are dropped,
        by default 0.
    """
    verbose = config.get("verbose")
    if verbose is True:
        verbose = 1
    if verbose and level < int(verbose):
        print(text)


def clamp(v, lo, hi):
    return lo if v < lo else (hi if v > hi else v)
