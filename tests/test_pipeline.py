"""Tests for the mapthumb.pipeline module."""

import logging
import threading
from unittest.mock import patch

import pytest
from PIL import Image

from mapthumb.pipeline import (CancellationToken, ImmediateDispatcher,
                               RenderCancelled, ThumbnailBrowser, TileRenderer,
                               TileRenderState, UiDispatcher, default_workers,
                               list_folder)
from mapthumb.readers.exercise import read_scenario
from mapthumb.tilers.scene import RenderedTile


def _tile(color, **kwargs):
    return RenderedTile.from_image(Image.new("RGBA", (8, 4), color), **kwargs)


class FakeRenderer:
    """Renderer recording its calls; ``gate`` blocks default renders."""

    def __init__(self, has_platforms=True, gate=None, fail=False):
        self.has_platforms = has_platforms
        self.gate = gate
        self.fail = fail
        self.calls = []
        self._lock = threading.Lock()

    def placeholder(self):
        return _tile((48, 51, 60, 255), placeholder=True)

    def render_default(self, state):
        with self._lock:
            self.calls.append(("default", state.path.name))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise RuntimeError("render exploded")
        return _tile((0, 0, 255, 255))

    def render_hover(self, state):
        with self._lock:
            self.calls.append(("hover", state.path.name))
        if not self.has_platforms:
            return None
        return _tile((255, 0, 0, 255))

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)


@pytest.fixture
def listing(temp_dir):
    """Folder with two sub folders, three listed files and one ignored file."""
    (temp_dir / "b_sub").mkdir()
    (temp_dir / "A_dir").mkdir()
    for name in ("z.exercise", "a.png", "M.JPG", "notes.txt"):
        (temp_dir / name).write_bytes(b"")
    return temp_dir


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel(self):
        """cancel should set the flag and make raise_if_cancelled raise."""
        token = CancellationToken()
        token.raise_if_cancelled()
        assert not token.cancelled

        token.cancel()

        assert token.cancelled
        with pytest.raises(RenderCancelled):
            token.raise_if_cancelled()


class TestDispatchers:
    """Tests for UiDispatcher and ImmediateDispatcher."""

    def test_ui_dispatcher_defers(self):
        """Posted callables should only run on drain."""
        ui = UiDispatcher()
        seen = []
        ui.post(seen.append, 1)
        ui.post(seen.append, 2)

        assert seen == []
        assert ui.drain() == 2
        assert seen == [1, 2]
        assert ui.drain() == 0

    def test_immediate_dispatcher(self):
        """ImmediateDispatcher should run callables at once."""
        seen = []
        ImmediateDispatcher().post(seen.append, 1)

        assert seen == [1]

    def test_immediate_post_waits_for_lock(self):
        """A worker post should wait while the lock is held elsewhere."""
        dispatcher = ImmediateDispatcher()
        seen = []
        worker = threading.Thread(target=dispatcher.post, args=(seen.append, 1))

        with dispatcher.lock:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert seen == []
        worker.join(timeout=5)

        assert seen == [1]

    def test_drain_runs_under_lock(self):
        """Drained callables should run while holding the lock."""
        ui = UiDispatcher()
        free = []

        def try_lock():
            if ui.lock.acquire(blocking=False):
                ui.lock.release()
                free.append(True)
            else:
                free.append(False)

        def check():
            t = threading.Thread(target=try_lock)
            t.start()
            t.join(timeout=5)

        ui.post(check)
        ui.drain()
        try_lock()

        assert free == [False, True]


class TestListFolder:
    """Tests for list_folder function."""

    def test_folders_first_then_files(self, listing):
        """Folders should come first, then image and exercise files."""
        names = [(p.name, is_folder) for p, is_folder in list_folder(listing)]

        assert names == [("A_dir", True), ("b_sub", True),
                         ("a.png", False), ("M.JPG", False), ("z.exercise", False)]

    def test_unreadable_folder(self, temp_dir):
        """A folder that cannot be listed should be empty."""
        assert list_folder(temp_dir / "missing") == []


class TestNavigate:
    """Tests for ThumbnailBrowser.navigate."""

    def test_creates_states_and_message(self, listing):
        """Each entry should get a state showing the placeholder."""
        renderer = FakeRenderer()
        ui = UiDispatcher()
        with ThumbnailBrowser(dispatcher=ui, renderer=renderer, workers=2) as browser:
            states = browser.navigate(listing)

            assert browser.message == "5 items"
            assert [s.is_folder for s in states] == [True, True, False, False, False]
            assert all(s.displayed is not None and s.displayed.placeholder for s in states)
            assert all(s.generation == browser.generation for s in states)
            assert browser.wait_idle(timeout=5)

    def test_missing_folder(self, temp_dir):
        """A missing folder should give no tiles and a message."""
        with ThumbnailBrowser(renderer=FakeRenderer()) as browser:
            states = browser.navigate(temp_dir / "missing")

            assert states == []
            assert browser.message == "Folder not found."

    def test_published_only_on_drain(self, listing):
        """Rasters should be assigned on the presentation thread only."""
        ui = UiDispatcher()
        with ThumbnailBrowser(dispatcher=ui, renderer=FakeRenderer()) as browser:
            states = browser.navigate(listing)
            browser.wait_idle(timeout=5)

            assert all(s.default_raster is None for s in states)
            assert ui.drain() == len(states)
            assert all(s.default_raster is not None for s in states)
            assert all(s.displayed is s.default_raster for s in states)

    def test_on_tile_ready(self, listing):
        """on_tile_ready should be called once per published tile."""
        ready = []
        with ThumbnailBrowser(renderer=FakeRenderer(),
                              on_tile_ready=ready.append) as browser:
            states = browser.navigate(listing)
            browser.wait_idle(timeout=5)

        assert sorted(s.path.name for s in ready) == sorted(s.path.name for s in states)


class TestCancellation:
    """Tests for generation cancellation."""

    def test_stale_hand_off_dropped(self, listing, temp_dir):
        """Hand-offs queued for a previous listing should publish nothing."""
        ui = UiDispatcher()
        with ThumbnailBrowser(dispatcher=ui, renderer=FakeRenderer()) as browser:
            old = browser.navigate(listing)
            browser.wait_idle(timeout=5)
            browser.navigate(listing / "A_dir")
            ui.drain()

            assert all(s.default_raster is None for s in old)
            assert all(s.displayed.placeholder for s in old)

    def test_in_flight_render_dropped(self, listing):
        """Renders finishing after navigation should not be published."""
        gate = threading.Event()
        ui = UiDispatcher()
        renderer = FakeRenderer(gate=gate)
        browser = ThumbnailBrowser(dispatcher=ui, renderer=renderer, workers=2)
        old = browser.navigate(listing)
        browser.navigate(listing / "b_sub")
        gate.set()
        browser.shutdown(wait=True)
        ui.drain()

        assert all(s.default_raster is None for s in old)
        # Pending jobs were cancelled before they started
        assert renderer.count("default") <= 2

    def test_render_error_logged(self, listing, caplog):
        """Unexpected render errors should be logged and keep the placeholder."""
        with caplog.at_level(logging.ERROR, logger="mapthumb.pipeline"):
            with ThumbnailBrowser(renderer=FakeRenderer(fail=True)) as browser:
                states = browser.navigate(listing)
                browser.wait_idle(timeout=5)

        assert all(s.displayed.placeholder for s in states)
        assert "render exploded" in caplog.text


class TestHover:
    """Tests for pointer_enter/pointer_leave."""

    def _exercise_state(self, browser, listing):
        states = browser.navigate(listing)
        browser.wait_idle(timeout=5)
        return states, [s for s in states if s.is_exercise][0]

    def test_hover_rendered_once(self, listing):
        """Repeated hovering should render the close-up only once."""
        renderer = FakeRenderer()
        with ThumbnailBrowser(renderer=renderer) as browser:
            _, state = self._exercise_state(browser, listing)

            browser.pointer_enter(state)
            browser.pointer_enter(state)
            browser.wait_idle(timeout=5)

            assert state.hover_render_started
            assert state.displayed is state.hover_raster

            browser.pointer_leave(state)
            assert state.displayed is state.default_raster

            browser.pointer_enter(state)
            assert state.displayed is state.hover_raster
            browser.wait_idle(timeout=5)

        assert renderer.count("hover") == 1

    def test_hover_finishing_after_leave(self, listing):
        """A close-up finishing after the pointer left should not be shown."""
        ui = UiDispatcher()
        with ThumbnailBrowser(dispatcher=ui, renderer=FakeRenderer()) as browser:
            _, state = self._exercise_state(browser, listing)
            ui.drain()

            browser.pointer_enter(state)
            browser.pointer_leave(state)
            browser.wait_idle(timeout=5)
            ui.drain()

            assert state.hover_raster is not None
            assert state.displayed is state.default_raster

    def test_no_platforms_disables_hover(self, listing):
        """Exercises without platforms should disable hovering."""
        renderer = FakeRenderer(has_platforms=False)
        with ThumbnailBrowser(renderer=renderer) as browser:
            _, state = self._exercise_state(browser, listing)

            browser.pointer_enter(state)
            browser.wait_idle(timeout=5)
            browser.pointer_leave(state)
            browser.pointer_enter(state)
            browser.wait_idle(timeout=5)

            assert state.hover_disabled
            assert state.hover_raster is None
            assert state.displayed is state.default_raster

        assert renderer.count("hover") == 1

    def test_no_hover_for_folders_and_images(self, listing):
        """Only exercise tiles should get a hover render."""
        renderer = FakeRenderer()
        with ThumbnailBrowser(renderer=renderer) as browser:
            states, _ = self._exercise_state(browser, listing)
            for state in states:
                if not state.is_exercise:
                    browser.pointer_enter(state)
            browser.wait_idle(timeout=5)

        assert renderer.count("hover") == 0

    def test_pointer_events_serialised_with_hand_offs(self, listing):
        """Pointer events should wait for a hand-off holding the lock."""
        dispatcher = ImmediateDispatcher()
        with ThumbnailBrowser(dispatcher=dispatcher, renderer=FakeRenderer()) as browser:
            _, state = self._exercise_state(browser, listing)
            browser.pointer_enter(state)
            browser.wait_idle(timeout=5)
            assert state.displayed is state.hover_raster

            leave = threading.Thread(target=browser.pointer_leave, args=(state,))
            with dispatcher.lock:
                leave.start()
                leave.join(timeout=0.2)
                assert leave.is_alive()
                assert state.hovered
                assert state.displayed is state.hover_raster
            leave.join(timeout=5)

            assert not state.hovered
            assert state.displayed is state.default_raster


class TestClickAndNavigation:
    """Tests for click, up and refresh."""

    def test_click_folder_navigates(self, listing):
        """Clicking a folder tile should list that folder."""
        with ThumbnailBrowser(renderer=FakeRenderer()) as browser:
            states = browser.navigate(listing)

            assert browser.click(states[0]) is None
            assert browser.folder == listing / "A_dir"
            assert browser.message == "0 items"

    def test_click_file_selects(self, listing):
        """Clicking a file tile should select it."""
        with ThumbnailBrowser(renderer=FakeRenderer()) as browser:
            states = browser.navigate(listing)

            assert browser.click(states[-1]) == listing / "z.exercise"
            assert browser.selected_file == listing / "z.exercise"

    def test_up_and_refresh(self, listing):
        """up should list the parent; refresh should start a new generation."""
        with ThumbnailBrowser(renderer=FakeRenderer()) as browser:
            browser.navigate(listing / "A_dir")
            generation = browser.generation

            browser.refresh()
            assert browser.generation == generation + 1

            browser.up()
            assert browser.folder.resolve() == listing.resolve()
            assert browser.message == "5 items"


class TestWorkers:
    """Tests for the default pool size."""

    @pytest.mark.parametrize("cpus,expected", [(1, 2), (4, 2), (16, 8), (None, 2)])
    def test_default_workers(self, cpus, expected):
        """Default workers should be max(2, cpu_count // 2)."""
        with patch("mapthumb.pipeline.os.cpu_count", return_value=cpus), \
                patch("mapthumb.config.get", return_value=None):
            assert default_workers() == expected

    def test_configured_workers(self):
        """The workers setting should win."""
        with patch("mapthumb.config.get", return_value=3):
            assert default_workers() == 3


class TestTileRenderer:
    """End to end rendering through TileRenderer."""

    def test_renders_listing(self, temp_dir, land_source, sample_exercise, make_exercise):
        """Exercises, images and folders should all get real rasters."""
        make_exercise(name="empty.exercise", center=(0.0, 0.0))
        Image.new("RGB", (300, 200), (10, 200, 10)).save(temp_dir / "pic.png")
        (temp_dir / "sub").mkdir()

        renderer = TileRenderer(land_source, 220, 124)
        with ThumbnailBrowser(renderer=renderer, tile_size=(220, 124)) as browser:
            states = browser.navigate(temp_dir)
            browser.wait_idle(timeout=30)
            for state in states:
                browser.pointer_enter(state)
            browser.wait_idle(timeout=30)

        by_name = {s.name: s for s in states}
        assert all(s.default_raster is not None for s in states)
        assert all(s.default_raster.size == (220, 124) for s in states)
        assert by_name["scenario.exercise"].displayed is by_name["scenario.exercise"].hover_raster
        assert by_name["empty.exercise"].hover_disabled
        assert by_name["pic.png"].hover_raster is None

    def test_hover_reads_exercise_once(self, land_source, sample_exercise):
        """The hover render should parse the exercise a single time."""
        renderer = TileRenderer(land_source, 64, 48)
        state = TileRenderState(sample_exercise, False, 1)

        with patch("mapthumb.pipeline.read_scenario", wraps=read_scenario) as mock_pipeline, \
                patch("mapthumb.thumbnails.read_scenario") as mock_thumbnails:
            tile = renderer.render_hover(state)

        mock_pipeline.assert_called_once_with(sample_exercise)
        mock_thumbnails.assert_not_called()
        assert tile.size == (64, 48)
        assert not tile.placeholder
        assert [d.layer for d in tile.draws].count("other") == 2
