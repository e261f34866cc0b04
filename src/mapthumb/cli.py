"""Command-line interface for mapthumb.

This module provides CLI commands for rendering exercise thumbnails and for
rendering every tile of a folder listing, using the Typer framework.
"""
import logging
import pathlib
from typing import Optional

import typer
from tqdm import tqdm

from . import config
from .pipeline import ImmediateDispatcher, ThumbnailBrowser
from .readers.exercise import read_scenario
from .thumbnails import (render_adaptive_cluster_zoom, render_exercise_overview,
                         render_exercise_preview)
from .utils import vprint
from .viewfit import auto_view

app = typer.Typer(help="Map thumbnails for exercise files.")


def _setup(env, verbose=False):
    if env != "DEFAULT":
        config.change_env(env)
    if verbose:
        config.settings.set("verbose", True)
        logging.basicConfig(level=logging.INFO)


def _tile_size(width, height):
    return (width or int(config.get("tile_width")),
            height or int(config.get("tile_height")))


@app.command()
def render(
    exercise: pathlib.Path = typer.Argument(..., help="Exercise file to render."),
    out: pathlib.Path = typer.Argument(..., help="Output PNG file."),
    shapefile: Optional[pathlib.Path] = typer.Option(
        None, help="Coastline shapefile, by default the shapefile_path setting."),
    width: Optional[int] = typer.Option(None, min=1, help="Tile width in pixels."),
    height: Optional[int] = typer.Option(None, min=1, help="Tile height in pixels."),
    hover: bool = typer.Option(False, help="Render the contacts close-up."),
    overview: bool = typer.Option(False, help="Render the view over all platforms."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Render one exercise thumbnail to a PNG file."""
    _setup(env, verbose)
    source = shapefile or config.get("shapefile_path")
    w, h = _tile_size(width, height)
    if hover:
        tile = render_adaptive_cluster_zoom(source, exercise, w, h)
    elif overview:
        tile = render_exercise_overview(source, exercise, w, h)
    else:
        tile = render_exercise_preview(source, exercise, w, h)
    tile.save(out)
    if tile.placeholder:
        typer.echo(f"Placeholder written to {out}: {tile.message}", err=True)
    else:
        typer.echo(f"Wrote {out} ({w}x{h})")


@app.command()
def view(
    exercise: pathlib.Path = typer.Argument(..., help="Exercise file."),
    min_radius: float = typer.Option(60.0, help="Minimum radius in nm."),
    padding: float = typer.Option(30.0, help="Padding in nm."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
):
    """Print the auto-fit view over every platform of an exercise."""
    _setup(env)
    scenario = read_scenario(exercise)
    if not scenario.ok:
        typer.echo(f"{exercise}: {scenario.status.value} ({scenario.error})", err=True)
        raise typer.Exit(code=1)
    fit = auto_view([scenario.launches, scenario.others], min_radius, padding)
    window = fit.to_window()
    typer.echo(f"launch platforms: {len(scenario.launches)}")
    typer.echo(f"other platforms:  {len(scenario.others)}")
    if scenario.center is not None:
        typer.echo(f"exercise center:  {scenario.center.lat:.5f}, {scenario.center.lon:.5f}")
    typer.echo(f"view center:      {fit.center.lat:.5f}, {fit.center.lon:.5f}")
    typer.echo(f"radius:           {fit.radius_nm:.1f} nm")
    typer.echo(f"window:           lon [{window.min_lon:.4f}, {window.max_lon:.4f}] "
               f"lat [{window.min_lat:.4f}, {window.max_lat:.4f}]")


@app.command()
def browse(
    folder: pathlib.Path = typer.Argument(..., help="Folder to list."),
    outdir: pathlib.Path = typer.Argument(..., help="Directory for the tile PNGs."),
    shapefile: Optional[pathlib.Path] = typer.Option(
        None, help="Coastline shapefile, by default the shapefile_path setting."),
    workers: Optional[int] = typer.Option(None, min=1, help="Render threads."),
    hover: bool = typer.Option(False, help="Also render the hover close-ups."),
    env: str = typer.Option("DEFAULT", help="Settings environment."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Render every tile of a folder listing to PNG files."""
    _setup(env, verbose)
    source = shapefile or config.get("shapefile_path")

    pbar = tqdm(desc="Rendering tiles", unit="tile", total=0)
    with ThumbnailBrowser(source, ImmediateDispatcher(), workers=workers,
                          on_tile_ready=lambda state: pbar.update(1)) as browser:
        states = browser.navigate(folder)
        pbar.total = len(states)
        pbar.refresh()
        browser.wait_idle()
        pbar.close()
        typer.echo(browser.message)
        if not states and browser.message == "Folder not found.":
            raise typer.Exit(code=1)

        if hover:
            browser.on_tile_ready = None
            for state in states:
                browser.pointer_enter(state)
                browser.pointer_leave(state)
            browser.wait_idle()

    outdir.mkdir(parents=True, exist_ok=True)
    n_written = 0
    for state in states:
        for suffix, raster in (("", state.default_raster), (".hover", state.hover_raster)):
            if raster is None:
                continue
            fn = outdir / f"{state.name}{suffix}.png"
            raster.save(fn)
            vprint(f"Wrote {fn}")
            n_written += 1
    typer.echo(f"{n_written} tiles written to {outdir}")
