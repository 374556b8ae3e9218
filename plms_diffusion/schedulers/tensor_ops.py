# plms_diffusion/schedulers/tensor_ops.py
from typing import Sequence

import torch


def weighted_sum(weights: Sequence[float], values: Sequence[torch.Tensor]) -> torch.Tensor:
    """
    Compute ``sum_i weights[i] * values[i]`` for tensors of equal shape.

    The result is a new tensor in the dtype and on the device of the first
    value; none of the inputs are modified.

    Args:
        weights: Scalar weight for each tensor, at least two
        values: Tensors to be weighted and summed

    Returns:
        Weighted sum of ``values``
    """
    if len(weights) < 2:
        raise ValueError(f"weighted_sum needs at least 2 terms, got {len(weights)}")
    if len(weights) != len(values):
        raise ValueError(f"Got {len(weights)} weights for {len(values)} values")

    shape = values[0].shape
    for value in values[1:]:
        if value.shape != shape:
            raise ValueError(f"Shape mismatch in weighted_sum: {tuple(value.shape)} vs {tuple(shape)}")

    result = torch.zeros_like(values[0])
    for weight, value in zip(weights, values):
        # result += weight * value, accumulated in place like an axpy
        result.add_(value.to(result.dtype), alpha=float(weight))
    return result
