# plms_diffusion/schedulers/karras.py
from typing import Sequence, Union

import torch

from .schedule import linspace

SigmaLike = Union[Sequence[float], torch.Tensor]


def _as_float64(values: SigmaLike) -> torch.Tensor:
    return torch.as_tensor(values, dtype=torch.float64).flatten()


def convert_to_karras(sigmas: SigmaLike, num_steps: int, rho: float = 7.0) -> torch.Tensor:
    """
    Karras et al. (2022) noise levels spanning the range of ``sigmas``.

    ``sigmas[0]`` is taken as the largest and ``sigmas[-1]`` as the smallest
    noise level; the returned schedule runs from the former to the latter,
    with steps concentrated near the small end.

    Args:
        sigmas: Existing noise levels, largest first
        num_steps: Number of noise levels to return, at least 2
        rho: Curvature of the schedule, 7.0 is the value used in the paper

    Returns:
        float64 tensor of ``num_steps`` sigmas
    """
    sigmas = _as_float64(sigmas)
    if sigmas.numel() == 0:
        raise ValueError("convert_to_karras needs at least one sigma")

    sigma_min = sigmas[-1].item()
    sigma_max = sigmas[0].item()

    ramp = linspace(0, 1, num_steps)
    min_inv_rho = sigma_min ** (1 / rho)
    max_inv_rho = sigma_max ** (1 / rho)
    return (max_inv_rho + ramp * (min_inv_rho - max_inv_rho)) ** rho


def convert_to_timesteps(sigmas: SigmaLike, log_sigmas: SigmaLike) -> torch.Tensor:
    """
    Map noise levels to fractional timesteps.

    Each sigma is located between two adjacent entries of ``log_sigmas``
    (ascending, one per training timestep) and linearly interpolated in log
    space, giving the continuous timestep a sigma-parameterized sampler
    should pass to the model.

    Args:
        sigmas: Noise levels to convert
        log_sigmas: Log noise level of each training timestep

    Returns:
        float64 tensor with one timestep per sigma
    """
    log_sigmas = _as_float64(log_sigmas)
    if log_sigmas.numel() < 2:
        raise ValueError("convert_to_timesteps needs at least 2 log sigmas")

    log_sigma = torch.log(_as_float64(sigmas))
    dists = log_sigma[:, None] - log_sigmas[None, :]

    # Last non-negative distance, clipped so that high stays in range
    low_idx = ((dists >= 0).sum(dim=1) - 1).clamp(min=0, max=log_sigmas.numel() - 2)
    high_idx = low_idx + 1

    low = log_sigmas[low_idx]
    high = log_sigmas[high_idx]

    w = ((low - log_sigma) / (low - high)).clamp(0, 1)
    return (1 - w) * low_idx.to(torch.float64) + w * high_idx.to(torch.float64)


def sigmas_from_alphas_cumprod(alphas_cumprod: torch.Tensor) -> torch.Tensor:
    """Noise level ``sqrt((1 - a) / a)`` of each training timestep, ascending."""
    alphas_cumprod = alphas_cumprod.to(torch.float64)
    return ((1 - alphas_cumprod) / alphas_cumprod).sqrt()
