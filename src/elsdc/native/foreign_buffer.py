"""
Owning wrapper for arrays allocated on the native side.

The detector allocates the record array and the parallel label array in one
call and frees both in one matching call, so a single ForeignBuffer owns the
pair. It records the element count at construction and hands that exact
count back to the release routine. The release runs at most once, whether
through close(), the context manager, or the finalizer when the owner is
collected without closing.
"""

import ctypes
import weakref

from elsdc.errors import DetectionError
from elsdc.native.ffi import RingRecord


class ForeignBuffer:
    """Detector-allocated (records, labels) pair of `count` elements."""

    def __init__(self, records, labels, count, release_fn):
        if count < 0:
            raise DetectionError(f"negative element count {count}", operation="foreign_buffer")
        self._records = records
        self._labels = labels
        self._count = count
        # finalize unregisters itself before invoking, so release never repeats
        self._finalizer = weakref.finalize(self, release_fn, records, labels, count)

    def __len__(self):
        return self._count

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    @property
    def released(self):
        return not self._finalizer.alive

    def release(self):
        """Hand both arrays back to the native free routine. Idempotent."""
        self._finalizer()

    def _check_live(self):
        if self.released:
            raise DetectionError("buffer already released", operation="foreign_buffer")

    def records(self):
        """Borrowed view of the records, valid until release()."""
        self._check_live()
        if self._count == 0 or not self._records:
            return (RingRecord * 0)()
        array_type = RingRecord * self._count
        return ctypes.cast(self._records, ctypes.POINTER(array_type)).contents

    def labels(self):
        """Borrowed view of the labels, valid until release()."""
        self._check_live()
        if self._count == 0 or not self._labels:
            return (ctypes.c_int * 0)()
        array_type = ctypes.c_int * self._count
        return ctypes.cast(self._labels, ctypes.POINTER(array_type)).contents
