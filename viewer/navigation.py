from typing import Optional

SWIPE_THRESHOLD = 50  # pixels

NEXT_KEYS = frozenset({"Right", "ArrowRight"})
PREVIOUS_KEYS = frozenset({"Left", "ArrowLeft"})
CLOSE_KEYS = frozenset({"Escape"})


class Navigator:
    """
    Position of the lightbox within an image list.

    `index` is None while no image is open. Moving past either end stays on
    the first/last image.
    """

    def __init__(self, count: int = 0, *, swipe_threshold: int = SWIPE_THRESHOLD):
        if count < 0:
            raise ValueError("count cannot be negative")
        self._count = count
        self.swipe_threshold = swipe_threshold
        self.index: Optional[int] = None

    @property
    def count(self) -> int:
        return self._count

    @property
    def is_open(self) -> bool:
        return self.index is not None

    def reset(self, count: int) -> None:
        """New image list: close the lightbox and adopt the new length."""
        if count < 0:
            raise ValueError("count cannot be negative")
        self._count = count
        self.index = None

    def open(self, index: int) -> int:
        if not 0 <= index < self._count:
            raise IndexError(f"image index {index} out of range (0..{self._count - 1})")
        self.index = index
        return index

    def close(self) -> None:
        self.index = None

    def next(self) -> Optional[int]:
        if self.index is not None:
            self.index = min(self.index + 1, self._count - 1)
        return self.index

    def previous(self) -> Optional[int]:
        if self.index is not None:
            self.index = max(self.index - 1, 0)
        return self.index

    def handle_key(self, key: str) -> bool:
        """Apply a key press. Returns True if the key meant anything."""
        if not self.is_open:
            return False
        if key in NEXT_KEYS:
            self.next()
        elif key in PREVIOUS_KEYS:
            self.previous()
        elif key in CLOSE_KEYS:
            self.close()
        else:
            return False
        return True

    def handle_swipe(self, start_x: float, end_x: float) -> bool:
        """
        Apply a horizontal drag. A swipe to the left shows the next image,
        to the right the previous one; short drags are ignored.
        """
        if not self.is_open:
            return False
        if start_x - end_x > self.swipe_threshold:
            self.next()
        elif end_x - start_x > self.swipe_threshold:
            self.previous()
        else:
            return False
        return True

    def remove_current(self) -> Optional[int]:
        """The open image was deleted; stay at the same slot if possible."""
        if self.index is None:
            return None
        self._count -= 1
        if self._count == 0:
            self.index = None
        else:
            self.index = min(self.index, self._count - 1)
        return self.index
