"""Single-shot triggers signalling that a poster became relevant to the viewer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

VisibilityCallback = Callable[[], None]

DEFAULT_ROOT_MARGIN = 200.0
DEFAULT_THRESHOLD = 0.01


class VisibilityTrigger:
    """Fires its subscribers at most once per instance.

    Subscribing after the trigger has fired invokes the callback right away,
    so a loader attached late still observes the transition.
    """

    def __init__(self) -> None:
        self._fired = False
        self._callbacks: list[VisibilityCallback] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self, callback: VisibilityCallback) -> None:
        if self._fired:
            callback()
            return
        self._callbacks.append(callback)

    def _fire(self) -> None:
        if self._fired:
            return
        self._fired = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class ManualTrigger(VisibilityTrigger):
    """Trigger fired explicitly by the host."""

    def fire(self) -> None:
        self._fire()


class EagerTrigger(VisibilityTrigger):
    """Trigger for eagerly rendered resources: relevant from the start."""

    def __init__(self) -> None:
        super().__init__()
        self._fired = True


@dataclass(frozen=True, slots=True)
class Box:
    """Axis-aligned rectangle in layout pixels."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    def expanded(self, margin: float) -> "Box":
        return Box(
            self.left - margin,
            self.top - margin,
            self.width + 2 * margin,
            self.height + 2 * margin,
        )

    def contains(self, other: "Box") -> bool:
        """Edge-inclusive containment, used for boxes without area."""

        return (
            self.left <= other.left
            and other.right <= self.right
            and self.top <= other.top
            and other.bottom <= self.bottom
        )

    def intersection_area(self, other: "Box") -> float:
        width = min(self.right, other.right) - max(self.left, other.left)
        height = min(self.bottom, other.bottom) - max(self.top, other.top)
        if width <= 0 or height <= 0:
            return 0.0
        return width * height


class ViewportTrigger(VisibilityTrigger):
    """Fires once the element overlaps the viewport grown by ``root_margin``.

    ``threshold`` is the fraction of the element's area that must be inside
    the observation region. Hosts feed layout changes through :meth:`update`.
    """

    def __init__(
        self,
        *,
        root_margin: float = DEFAULT_ROOT_MARGIN,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        super().__init__()
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        self._root_margin = root_margin
        self._threshold = threshold

    def update(self, element: Box, viewport: Box) -> bool:
        """Re-evaluate relevance; return whether the trigger has fired."""

        if self._fired:
            return True
        region = viewport.expanded(self._root_margin)
        if element.area <= 0:
            # Unlaid-out elements count as fully visible once inside the region.
            ratio = 1.0 if region.contains(element) else 0.0
        else:
            ratio = region.intersection_area(element) / element.area
        if ratio <= 0:
            return False
        if ratio >= self._threshold:
            logger.debug("Element entered observation region (ratio %.3f)", ratio)
            self._fire()
        return self._fired
