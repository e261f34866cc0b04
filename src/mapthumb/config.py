"""Configuration management for mapthumb.

Settings are loaded with Dynaconf from several locations in order of
increasing priority:

1. Global settings (/etc/mapthumb/)
2. User settings (~/.config/mapthumb/)
3. Current directory settings (./)
4. Environment variable specified file (MAPTHUMB_SETTINGS_FILE_FOR_DYNACONF)

Single values can also be overridden with ``MAPTHUMB_<KEY>`` environment
variables, e.g. ``MAPTHUMB_SHAPEFILE_PATH=/data/GSHHS_l_L1.shp``.

Attributes
----------
USER_DIR : pathlib.Path
    Path to user configuration directory.
GLOB_DIR : pathlib.Path
    Path to global configuration directory.
CURR_DIR : pathlib.Path
    Path to current working directory.
DEFAULTS : dict
    Fallback values for every key the package reads.
settings : Dynaconf
    The Dynaconf settings object with loaded configuration.
"""
import os
import pathlib

from dynaconf import Dynaconf

USER_DIR = pathlib.Path("~/.config/mapthumb").expanduser()
GLOB_DIR = pathlib.Path("/etc/mapthumb/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    USER_DIR / "settings.toml",
    CURR_DIR / "settings.toml",
    ]
extra_file = os.getenv("MAPTHUMB_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

DEFAULTS = {
    "shapefile_path": None,
    "tile_width": 220,
    "tile_height": 124,
    "zoom_radius_nm": 300,
    "pad_ratio": 1.15,
    "cross_opacity": 0.85,
    "workers": None,
    "max_geodetic_iterations": 100,
    "verbose": False,
    "style": {},
}

settings = Dynaconf(
    merge_enabled=True,
    envvar_prefix="MAPTHUMB",
    settings_files=settings_files,
    environments=True,
    load_dotenv=True,
)


def get(key, default=None):
    """Return a setting, falling back to the package default for ``key``.

    Parameters
    ----------
    key : str
        Setting name (case-insensitive, as with Dynaconf).
    default : object, optional
        Value used when neither the settings nor ``DEFAULTS`` define ``key``.
    """
    value = settings.get(key)
    if value is None:
        return DEFAULTS.get(key.lower(), default)
    return value


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()
