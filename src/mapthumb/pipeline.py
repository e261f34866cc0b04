"""Concurrent thumbnail rendering for a folder listing.

``ThumbnailBrowser`` lists a folder, creates one ``TileRenderState`` per
entry and renders the tiles on a thread pool. Every listing is a new
generation with its own ``CancellationToken``; navigating away cancels the
token so that nothing rendered for an old listing is ever published.

Workers never touch a tile state directly. A finished raster is posted to a
dispatcher, which runs the hand-off on the presentation thread::

    ui = UiDispatcher()
    with ThumbnailBrowser("GSHHS_l_L1.shp", ui) as browser:
        browser.navigate("exercises/")
        browser.wait_idle()
        ui.drain()
"""
from __future__ import annotations

import logging
import os
import pathlib
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from PIL import Image

from . import config
from .readers.coastline import open_source
from .readers.exercise import read_scenario
from .thumbnails import (EXERCISE_EXTENSION, IMAGE_EXTENSIONS, ZoomTuning,
                         folder_icon, load_image_thumbnail,
                         render_exercise_preview, render_scenario_cluster_zoom)
from .tilers.scene import MapStyle, RenderedTile

logger = logging.getLogger(__name__)

PLACEHOLDER_COLOR = (48, 51, 60)


class RenderCancelled(Exception):
    """Raised inside a render job whose generation has been cancelled."""


class CancellationToken:
    """One-way cancellation flag shared by the jobs of a generation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise RenderCancelled()


class UiDispatcher:
    """Queue of callables executed on the presentation thread.

    Workers call ``post``; the thread owning the tile states calls ``drain``
    to run everything queued so far. Callables run while holding ``lock``,
    the same lock ``ThumbnailBrowser`` takes for pointer events.
    """

    def __init__(self):
        self._queue = queue.SimpleQueue()
        self.lock = threading.RLock()

    def post(self, fn: Callable, *args):
        self._queue.put((fn, args))

    def drain(self, timeout: Optional[float] = None) -> int:
        """Run queued callables, returning how many ran.

        With a ``timeout`` the first item is waited for; later items are
        only taken while the queue is non-empty.
        """
        n = 0
        block = timeout is not None
        while True:
            try:
                fn, args = self._queue.get(block=block, timeout=timeout)
            except queue.Empty:
                return n
            block = False
            with self.lock:
                fn(*args)
            n += 1


class ImmediateDispatcher(UiDispatcher):
    """Dispatcher for headless use: runs posted callables at once.

    Callables run on the posting worker thread, serialised by ``lock`` so
    tile states still see a single writer at a time.
    """

    def post(self, fn: Callable, *args):
        with self.lock:
            fn(*args)


@dataclass(eq=False)
class TileRenderState:
    """Presentation state of one tile in a listing."""
    path: pathlib.Path
    is_folder: bool
    generation: int
    default_raster: Optional[RenderedTile] = None
    hover_raster: Optional[RenderedTile] = None
    hover_render_started: bool = False
    hover_disabled: bool = False
    displayed: Optional[RenderedTile] = None
    hovered: bool = False

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_exercise(self) -> bool:
        return (not self.is_folder and
                self.path.suffix.lower() == EXERCISE_EXTENSION)


class TileRenderer:
    """Renders the default and hover rasters of a tile.

    Parameters
    ----------
    source : str, pathlib.Path or polygon source
        Coastline polygons shared by every render.
    width, height : int
        Tile size in pixels.
    tuning : ZoomTuning, optional
        Hover view parameters.
    style : MapStyle, optional
        Map colors, by default from settings.
    """

    def __init__(self, source, width: int, height: int,
                 tuning: Optional[ZoomTuning] = None,
                 style: Optional[MapStyle] = None):
        self.source = open_source(source)
        self.width = width
        self.height = height
        self.tuning = tuning or ZoomTuning()
        self.style = style or MapStyle.from_settings()

    def placeholder(self) -> RenderedTile:
        img = Image.new("RGBA", (self.width, self.height), PLACEHOLDER_COLOR + (255,))
        return RenderedTile.from_image(img, placeholder=True)

    def render_default(self, state: TileRenderState) -> Optional[RenderedTile]:
        """Folder icon, image thumbnail or exercise map; None for other files."""
        if state.is_folder:
            return folder_icon(self.width, self.height)
        suffix = state.path.suffix.lower()
        if suffix == EXERCISE_EXTENSION:
            return render_exercise_preview(self.source, state.path,
                                           self.width, self.height,
                                           style=self.style)
        if suffix in IMAGE_EXTENSIONS:
            return load_image_thumbnail(state.path, self.width, self.height)
        return None

    def render_hover(self, state: TileRenderState) -> Optional[RenderedTile]:
        """Contacts close-up, or None when the exercise has no platforms."""
        scenario = read_scenario(state.path)
        if not scenario.has_platforms:
            return None
        return render_scenario_cluster_zoom(self.source, scenario,
                                            self.width, self.height,
                                            self.tuning, self.style)


def list_folder(folder) -> List[Tuple[pathlib.Path, bool]]:
    """Folders first, then image and exercise files, each sorted by name.

    Unreadable folders list as empty.
    """
    folder = pathlib.Path(folder)
    try:
        children = sorted(folder.iterdir(), key=lambda p: p.name.lower())
    except OSError as e:
        logger.warning(f"Cannot list {folder}: {e}")
        return []

    dirs, files = [], []
    for child in children:
        try:
            if child.is_dir():
                dirs.append((child, True))
            elif child.suffix.lower() in IMAGE_EXTENSIONS + (EXERCISE_EXTENSION,):
                files.append((child, False))
        except OSError as e:
            logger.debug(f"Skipping {child}: {e}")
    return dirs + files


def default_workers() -> int:
    workers = config.get("workers")
    if workers:
        return int(workers)
    return max(2, (os.cpu_count() or 1) // 2)


class ThumbnailBrowser:
    """Folder browser whose tiles are rendered in the background.

    All methods except ``wait_idle`` are meant to be called from the
    presentation thread, the one draining ``dispatcher``.

    Parameters
    ----------
    source : str, pathlib.Path or polygon source, optional
        Coastline polygons, by default the ``shapefile_path`` setting.
    dispatcher : UiDispatcher, optional
        Where rendered rasters are handed off, by default an
        ``ImmediateDispatcher``.
    workers : int, optional
        Size of the render pool, by default the ``workers`` setting or half
        the CPU count (at least 2).
    renderer : TileRenderer, optional
        Object providing ``placeholder``, ``render_default`` and
        ``render_hover``.
    on_tile_ready : callable, optional
        Called as ``on_tile_ready(state)`` after a raster is published.
    tile_size : tuple of int, optional
        (width, height), by default the ``tile_width``/``tile_height``
        settings (220 x 124).
    """

    def __init__(self, source=None, dispatcher: Optional[UiDispatcher] = None,
                 workers: Optional[int] = None, renderer=None,
                 on_tile_ready: Optional[Callable] = None,
                 tile_size: Optional[Tuple[int, int]] = None):
        if source is None:
            source = config.get("shapefile_path")
        if tile_size is None:
            tile_size = (int(config.get("tile_width")), int(config.get("tile_height")))
        self.tile_size = tile_size
        self.dispatcher = dispatcher or ImmediateDispatcher()
        self.renderer = renderer or TileRenderer(source, *tile_size)
        self.on_tile_ready = on_tile_ready
        self.workers = workers or default_workers()
        self._executor = ThreadPoolExecutor(max_workers=self.workers,
                                            thread_name_prefix="mapthumb")
        self._lock = threading.Lock()
        self._futures = []
        self._token = CancellationToken()
        self.generation = 0
        self.folder: Optional[pathlib.Path] = None
        self.states: List[TileRenderState] = []
        self.message = ""
        self.selected_file: Optional[pathlib.Path] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def _cancel_generation(self):
        self._token.cancel()
        with self._lock:
            for future in self._futures:
                future.cancel()
            self._futures = []

    def navigate(self, folder) -> List[TileRenderState]:
        """List ``folder`` and start rendering its tiles.

        Work still pending for the previous listing is cancelled first.
        """
        self._cancel_generation()
        self._token = token = CancellationToken()
        self.generation += 1
        self.folder = pathlib.Path(folder)
        self.states = []

        if not self.folder.is_dir():
            self.message = "Folder not found."
            logger.warning(f"Folder not found: {self.folder}")
            return self.states

        entries = list_folder(self.folder)
        self.message = f"{len(entries)} items"
        logger.info(f"Listing {self.folder}: {self.message}")

        placeholder = self.renderer.placeholder()
        for path, is_folder in entries:
            state = TileRenderState(path, is_folder, self.generation,
                                    displayed=placeholder)
            self.states.append(state)
            self._submit(token, state, self.renderer.render_default,
                         self._publish_default)
        return self.states

    def up(self) -> List[TileRenderState]:
        """Navigate to the parent of the current folder."""
        if self.folder is None:
            return self.states
        return self.navigate(self.folder.absolute().parent)

    def refresh(self) -> List[TileRenderState]:
        if self.folder is None:
            return self.states
        return self.navigate(self.folder)

    def click(self, state: TileRenderState) -> Optional[pathlib.Path]:
        """Open a folder tile, or select a file tile and return its path."""
        if state.is_folder:
            self.navigate(state.path)
            return None
        self.selected_file = state.path
        return state.path

    def pointer_enter(self, state: TileRenderState):
        """Show the hover close-up of an exercise tile, rendering it once."""
        with self.dispatcher.lock:
            state.hovered = True
            if not state.is_exercise or state.hover_disabled:
                return
            if state.generation != self.generation:
                return
            if state.hover_raster is not None:
                state.displayed = state.hover_raster
                return
            if not state.hover_render_started:
                state.hover_render_started = True
                self._submit(self._token, state, self.renderer.render_hover,
                             self._publish_hover)

    def pointer_leave(self, state: TileRenderState):
        with self.dispatcher.lock:
            state.hovered = False
            if state.default_raster is not None:
                state.displayed = state.default_raster

    def _submit(self, token, state, render, publish):
        if token.cancelled:
            return None
        future = self._executor.submit(self._render_job, token, state,
                                       render, publish)
        with self._lock:
            self._futures.append(future)
        return future

    def _render_job(self, token, state, render, publish):
        try:
            token.raise_if_cancelled()
            result = render(state)
            token.raise_if_cancelled()
            self.dispatcher.post(self._hand_off, token, state, publish, result)
        except RenderCancelled:
            logger.debug(f"Render of {state.path} cancelled")
        except Exception:
            logger.exception(f"Rendering tile {state.path} failed")

    def _hand_off(self, token, state, publish, result):
        if token.cancelled:
            return
        publish(state, result)
        if self.on_tile_ready is not None:
            self.on_tile_ready(state)

    @staticmethod
    def _publish_default(state, raster):
        if raster is None:
            return
        state.default_raster = raster
        if not (state.hovered and state.hover_raster is not None):
            state.displayed = raster

    @staticmethod
    def _publish_hover(state, raster):
        if raster is None:
            state.hover_disabled = True
            return
        state.hover_raster = raster
        if state.hovered:
            state.displayed = raster

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for the render jobs of the current listing to finish.

        Hand-offs queued on a ``UiDispatcher`` still need a ``drain``.

        Returns
        -------
        bool
            False if jobs were still running when ``timeout`` expired.
        """
        with self._lock:
            futures = list(self._futures)
        _, not_done = wait_futures(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True):
        """Cancel outstanding work and stop the render pool."""
        self._token.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)
