"""
One synchronous call into the native detector, and the handoff of its
outputs to caller-owned values.

Ownership:
- input pixels: caller-owned, kept alive for the duration of the call
- label map: caller-allocated numpy buffer, filled in place, freed by Python
- records + labels: detector-allocated, wrapped in a ForeignBuffer, copied
  out element by element, then released through the native free routine
"""

import ctypes
import threading

import numpy as np
from pydantic import ValidationError

from elsdc.config import ElsdcConfig
from elsdc.errors import DetectionError, ImageReadError
from elsdc.models import DetectionResult, Primitive
from elsdc.native.ffi import ImageDouble, IntPtr, PImageInt, RecordPtr, load_library
from elsdc.native.foreign_buffer import ForeignBuffer
from elsdc.tracer import get_tracer, trace

# The native engine keeps global state and is not reentrant.
_NATIVE_LOCK = threading.Lock()


class Detector:
    """
    Wraps the native detector.

    `binding` is any object with `detect(image, count, records, labels,
    label_map) -> int` and `free(records, labels, count)`; by default the
    shared library named in config is loaded.
    """

    def __init__(self, binding=None, config=None):
        self.config = config or ElsdcConfig()
        self._binding = binding if binding is not None else load_library(self.config.detector)

    @trace(label="detect")
    def detect(self, grid):
        """
        Run the detector over a 2D grid of grayscale samples.

        Returns a DetectionResult that does not reference native memory.
        Raises ImageReadError for a missing image and DetectionError for any
        native failure.
        """
        tracer = get_tracer()

        if grid is None:
            raise ImageReadError("no image data", operation="detect")

        pixels = np.ascontiguousarray(grid, dtype=np.float64)
        if pixels.ndim != 2 or pixels.size == 0:
            raise DetectionError(f"expected a non-empty 2D grid, got shape {pixels.shape}",
                                 operation="detect")
        height, width = pixels.shape

        label_map = np.zeros(width * height, dtype=np.intc)
        label_map_address = label_map.ctypes.data

        in_image = ImageDouble(pixels.ctypes.data_as(ctypes.POINTER(ctypes.c_double)), width, height)
        out_image = PImageInt(label_map.ctypes.data_as(IntPtr), width, height)
        count = ctypes.c_int(0)
        records = RecordPtr()
        labels = IntPtr()

        with _NATIVE_LOCK:
            with tracer.span("native_detect", module="detector", width=width, height=height):
                status = self._binding.detect(
                    ctypes.pointer(in_image),
                    ctypes.pointer(count),
                    ctypes.pointer(records),
                    ctypes.pointer(labels),
                    ctypes.pointer(out_image),
                )

        if status != 0:
            tracer.event("Native outputs not trusted after failure, no free issued",
                         level="WARN", status=status)
            raise DetectionError(f"native detector returned status {status}", operation="detect")

        n = count.value
        if n < 0:
            tracer.event("Allocation size unknown, no free issued", level="WARN", count=n)
            raise DetectionError(f"native detector reported count {n}", operation="detect")

        buffer = ForeignBuffer(records, labels, n, self._binding.free)
        with buffer:
            if n > 0 and (not records or not labels):
                raise DetectionError(f"null output array with count {n}", operation="detect")

            if ctypes.cast(out_image.data, ctypes.c_void_p).value != label_map_address:
                raise DetectionError("label map buffer was replaced by the detector",
                                     operation="detect")

            try:
                primitives = [Primitive.from_record(record) for record in buffer.records()]
            except ValidationError as e:
                raise DetectionError("record violates primitive invariants",
                                     operation="detect", cause=e)
            label_values = [int(v) for v in buffer.labels()]

        tracer.event(f"Detected {n} primitives")

        return DetectionResult(
            primitives=primitives,
            labels=label_values,
            label_map=label_map.reshape(height, width),
            image_width=width,
            image_height=height,
        )
