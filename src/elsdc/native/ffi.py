"""
ctypes layouts and library loading for the native ELSDc detector.

The shared library must export two functions (names configurable):

    int  detect(const ImageDouble *in, int *count, Ring **records,
                int **labels, PImageInt *label_map);
    void free_outputs(Ring *records, int *labels, int count);

`detect` allocates `records` and `labels` itself and fills the caller's
label map in place. Only `free_outputs` may release what `detect` allocated.

`free_outputs` must accept a null `records` or `labels` independently. After a
successful `detect` it is called exactly once with both pointers as returned,
even when only one of them is null and `count` is positive, so a library that
only null-checks `records` is not a conforming binding.
"""

import ctypes
import ctypes.util
import os

from elsdc.errors import DetectionError
from elsdc.tracer import get_tracer

LIBRARY_ENV_VAR = "ELSDC_LIBRARY"


class ImageDouble(ctypes.Structure):
    """Input image descriptor, row-major doubles."""
    _fields_ = [
        ("data", ctypes.POINTER(ctypes.c_double)),
        ("xsize", ctypes.c_uint),
        ("ysize", ctypes.c_uint),
    ]


class PImageInt(ctypes.Structure):
    """Label-map descriptor; data is allocated by the caller."""
    _fields_ = [
        ("data", ctypes.POINTER(ctypes.c_int)),
        ("xsize", ctypes.c_uint),
        ("ysize", ctypes.c_uint),
    ]


class RingRecord(ctypes.Structure):
    """Detector's on-the-wire elliptical arc record."""
    _fields_ = [
        ("x1", ctypes.c_double),
        ("y1", ctypes.c_double),
        ("x2", ctypes.c_double),
        ("y2", ctypes.c_double),
        ("width", ctypes.c_double),
        ("cx", ctypes.c_double),
        ("cy", ctypes.c_double),
        ("theta", ctypes.c_double),
        ("ax", ctypes.c_double),
        ("bx", ctypes.c_double),
        ("ang_start", ctypes.c_double),
        ("ang_end", ctypes.c_double),
        ("wmin", ctypes.c_double),
        ("wmax", ctypes.c_double),
        ("full", ctypes.c_int),
    ]


RecordPtr = ctypes.POINTER(RingRecord)
IntPtr = ctypes.POINTER(ctypes.c_int)


class CDLLBinding:
    """
    Native binding over a loaded shared library.

    Exposes `detect` and `free` with the same argument shapes any test
    double must accept: ctypes pointers to the out-parameters.
    """

    def __init__(self, library, detect_symbol, free_symbol):
        self.library = library
        try:
            self._detect = getattr(library, detect_symbol)
            self._free = getattr(library, free_symbol)
        except AttributeError as e:
            raise DetectionError("missing native symbol", operation="load_library", cause=e)

        self._detect.argtypes = [
            ctypes.POINTER(ImageDouble),
            ctypes.POINTER(ctypes.c_int),
            ctypes.POINTER(RecordPtr),
            ctypes.POINTER(IntPtr),
            ctypes.POINTER(PImageInt),
        ]
        self._detect.restype = ctypes.c_int

        self._free.argtypes = [RecordPtr, IntPtr, ctypes.c_int]
        self._free.restype = None

    def detect(self, image, count, records, labels, label_map):
        return self._detect(image, count, records, labels, label_map)

    def free(self, records, labels, count):
        self._free(records, labels, count)


def find_library_path(library_path=None):
    """Resolve the detector library: explicit path, $ELSDC_LIBRARY, then the system search."""
    if library_path:
        return library_path
    env_path = os.environ.get(LIBRARY_ENV_VAR)
    if env_path:
        return env_path
    return ctypes.util.find_library("elsdc")


def load_library(detector_config):
    """Load the shared library named by config and bind its two entry points."""
    tracer = get_tracer()

    path = find_library_path(detector_config.library_path)
    if not path:
        raise DetectionError(
            f"native detector library not found; set detector.library_path or ${LIBRARY_ENV_VAR}",
            operation="load_library",
        )

    try:
        library = ctypes.CDLL(path)
    except OSError as e:
        raise DetectionError(f"cannot load {path}", operation="load_library", cause=e)

    tracer.event(f"Loaded native detector: {path}")
    return CDLLBinding(library, detector_config.detect_symbol, detector_config.free_symbol)


def native_available(detector_config):
    """True when a detector library can be located and loaded."""
    try:
        load_library(detector_config)
    except DetectionError:
        return False
    return True
