"""Pytest fixtures for ELSDc tests."""

import ctypes
import os
import tempfile

import cv2
import numpy as np
import pytest

from elsdc.native.ffi import IntPtr, RecordPtr, RingRecord


def make_record(**overrides):
    """Keyword arguments for a RingRecord describing a full circle by default."""
    values = {
        "x1": 0.0, "y1": 0.0, "x2": 0.0, "y2": 0.0,
        "width": 1.0,
        "cx": 50.0, "cy": 50.0,
        "theta": 0.0,
        "ax": 20.0, "bx": 20.0,
        "ang_start": 0.0, "ang_end": 0.0,
        "wmin": 0.5, "wmax": 1.5,
        "full": 1,
    }
    values.update(overrides)
    return values


class FakeNativeDetector:
    """
    Test double for the native binding.

    Allocates real ctypes arrays on each detect, tracks them by address, and
    records every free so tests can check nothing leaks or is freed twice.
    """

    def __init__(self, records=(), labels=None, status=0, reported_count=None,
                 null_labels=False, replace_label_map=False):
        self.records = [make_record(**r) for r in records]
        self.labels = list(labels) if labels is not None else list(range(1, len(self.records) + 1))
        self.status = status
        self.reported_count = reported_count
        self.null_labels = null_labels
        self.replace_label_map = replace_label_map

        self.live = {}
        self.allocations = 0
        self.frees = 0
        self.null_frees = 0
        self.double_frees = 0
        self.count_mismatches = 0
        self.calls = 0
        self.free_calls = []

    def detect(self, image, count, records, labels, label_map):
        self.calls += 1
        if self.status != 0:
            return self.status

        n = len(self.records)
        if n > 0:
            rec_array = (RingRecord * n)(*[RingRecord(**r) for r in self.records])
            lab_array = (ctypes.c_int * n)(*self.labels)
            records[0] = ctypes.cast(rec_array, RecordPtr)
            if not self.null_labels:
                labels[0] = ctypes.cast(lab_array, IntPtr)
            self.live[ctypes.addressof(rec_array)] = (rec_array, lab_array, n)
            self.allocations += 1

        count[0] = self.reported_count if self.reported_count is not None else n

        desc = label_map.contents
        if self.replace_label_map:
            self._stolen = (ctypes.c_int * (desc.xsize * desc.ysize))()
            desc.data = ctypes.cast(self._stolen, IntPtr)
        else:
            # Mark the first row with 1-based primitive labels
            for i in range(min(n, desc.xsize)):
                desc.data[i] = self.labels[i]

        return 0

    def free(self, records, labels, count):
        address = ctypes.cast(records, ctypes.c_void_p).value
        self.free_calls.append((address is None, not labels, count))
        if address is None:
            self.null_frees += 1
            return
        entry = self.live.pop(address, None)
        if entry is None:
            self.double_frees += 1
            return
        if entry[2] != count:
            self.count_mismatches += 1
        self.frees += 1


def draw_ring(size=100, center=(50, 50), inner=22.5, outer=25.0, background=0.0, foreground=255.0):
    """Float64 grid with a bright annulus on a dark background."""
    ys, xs = np.mgrid[0:size, 0:size]
    r = np.hypot(xs - center[0], ys - center[1])
    grid = np.full((size, size), background, dtype=np.float64)
    grid[(r >= inner) & (r <= outer)] = foreground
    return grid


def write_pgm_ascii(path, grid, maxval=255, comment="created by tests"):
    """Write a P2 file with a header comment."""
    height, width = grid.shape
    lines = ["P2", f"# {comment}", f"{width} {height}", str(maxval)]
    for row in grid.astype(int):
        lines.append(" ".join(str(v) for v in row))
    with open(path, "w", encoding="ascii") as f:
        f.write("\n".join(lines) + "\n")


def write_pgm_binary(path, grid, comment="created by tests"):
    """Write an 8-bit P5 file with a header comment."""
    height, width = grid.shape
    header = f"P5\n# {comment}\n{width} {height}\n255\n".encode("ascii")
    with open(path, "wb") as f:
        f.write(header)
        f.write(np.clip(grid, 0, 255).astype(np.uint8).tobytes())


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default configuration."""
    from elsdc.config import ElsdcConfig
    return ElsdcConfig()


@pytest.fixture
def ring_grid():
    """100x100 ring centered at (50, 50)."""
    return draw_ring()


@pytest.fixture
def ring_pgm(temp_dir, ring_grid):
    """Binary PGM of the ring image."""
    path = os.path.join(temp_dir, "ring.pgm")
    write_pgm_binary(path, ring_grid)
    return path


@pytest.fixture
def ring_png(temp_dir, ring_grid):
    """PNG of the ring image, for the OpenCV decoding path."""
    path = os.path.join(temp_dir, "ring.png")
    cv2.imwrite(path, ring_grid.astype(np.uint8))
    return path


@pytest.fixture
def two_circle_detector():
    """Fake detector emitting two overlapping circles and one distant arc."""
    return FakeNativeDetector(records=[
        {"cx": 40.0, "cy": 50.0, "ax": 15.0, "bx": 15.0},
        {"cx": 55.0, "cy": 50.0, "ax": 15.0, "bx": 15.0},
        {"cx": 90.0, "cy": 15.0, "ax": 8.0, "bx": 5.0, "theta": 0.4,
         "ang_start": 0.0, "ang_end": 3.0, "full": 0},
    ])


@pytest.fixture
def fake_detector_factory():
    """Build FakeNativeDetector instances with custom behavior."""
    return FakeNativeDetector


@pytest.fixture(autouse=True)
def quiet_tracer():
    """Leave the global tracer disabled between tests."""
    from elsdc.tracer import configure_tracer
    yield
    configure_tracer(enabled=False)
