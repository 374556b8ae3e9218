# plms_diffusion/schedulers/state.py
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

import torch


class ResidualHistory:
    """
    Bounded history of noise residuals, most recent last.

    Entries are read by distance from the newest one: ``back(1)`` is the
    latest residual, ``back(2)`` the one before it, and so on. Once full,
    appending drops the oldest entry.
    """

    def __init__(self, capacity: int = 4):
        if capacity < 1:
            raise ValueError(f"History capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: Deque[torch.Tensor] = deque(maxlen=capacity)

    def append(self, residual: torch.Tensor):
        self._items.append(residual)

    def back(self, distance: int) -> torch.Tensor:
        """Residual ``distance`` steps back, 1-based."""
        if not 1 <= distance <= len(self._items):
            raise IndexError(f"History holds {len(self._items)} residuals, cannot look back {distance}")
        return self._items[-distance]

    def latest(self, count: int) -> List[torch.Tensor]:
        """The ``count`` most recent residuals, newest first."""
        return [self.back(i) for i in range(1, count + 1)]

    def clear(self):
        self._items.clear()

    def copy(self) -> "ResidualHistory":
        other = ResidualHistory(self.capacity)
        other._items.extend(self._items)
        return other

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class PLMSState:
    """
    Mutable state of one PLMS sampling run.

    Attributes:
        counter: Number of ``step`` calls made so far
        history: Residuals of previous steps
        cached_sample: Sample held over from the first step to the second
        model_outputs: Denoised-sample estimate of every step, in order
    """

    counter: int = 0
    history: ResidualHistory = field(default_factory=ResidualHistory)
    cached_sample: Optional[torch.Tensor] = None
    model_outputs: List[torch.Tensor] = field(default_factory=list)

    def clone(self) -> "PLMSState":
        # Tensors are never written in place, sharing them is safe
        return PLMSState(
            counter=self.counter,
            history=self.history.copy(),
            cached_sample=self.cached_sample,
            model_outputs=list(self.model_outputs),
        )
