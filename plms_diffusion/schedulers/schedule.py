# plms_diffusion/schedulers/schedule.py
"""
Noise schedule construction for discrete-time diffusion schedulers.

A schedule is built once from the training configuration (number of
training timesteps and the beta range) plus the number of inference
steps, and is read-only afterwards. It carries the per-timestep variance
terms used to convert between noise predictions and denoised samples,
and the ordered timestep sequence the sampling loop walks through.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Union

import numpy as np
import torch


class BetaSchedule(str, Enum):
    """How a beta range is mapped to a per-timestep sequence of betas."""

    # Linear stepping between start and end
    LINEAR = "linear"
    # linspace(sqrt(start), sqrt(end)) ** 2, the Stable Diffusion schedule
    SCALED_LINEAR = "scaled_linear"


def linspace(start: float, end: float, count: int) -> torch.Tensor:
    """
    Evenly spaced float64 values over ``[start, end]``.

    Both endpoints are included, so ``count`` must be at least 2.

    Args:
        start: First value
        end: Last value
        count: Number of values

    Returns:
        1-D float64 tensor with ``count`` elements
    """
    if count < 2:
        raise ValueError(f"linspace needs at least 2 points, got count={count}")
    return torch.linspace(start, end, count, dtype=torch.float64)


def make_betas(
    num_train_timesteps: int,
    beta_start: float,
    beta_end: float,
    beta_schedule: Union[str, BetaSchedule] = BetaSchedule.SCALED_LINEAR,
) -> torch.Tensor:
    """Per-timestep betas as a float32 tensor of length ``num_train_timesteps``."""
    if beta_start <= 0 or beta_end <= 0:
        raise ValueError(f"beta_start and beta_end must be positive, got {beta_start}, {beta_end}")

    try:
        beta_schedule = BetaSchedule(beta_schedule)
    except ValueError:
        raise ValueError(f"Unsupported beta schedule: {beta_schedule}") from None

    if beta_schedule == BetaSchedule.LINEAR:
        betas = linspace(beta_start, beta_end, num_train_timesteps)
    else:
        betas = linspace(beta_start ** 0.5, beta_end ** 0.5, num_train_timesteps) ** 2

    return betas.to(torch.float32)


def make_timesteps(num_inference_steps: int, num_train_timesteps: int, steps_offset: int = 1) -> List[int]:
    """
    Training timesteps visited during inference, noisiest first.

    The penultimate forward step is duplicated so the sampler can run one
    extra correction step at the start of the run. The result has
    ``num_inference_steps + 1`` entries.
    """
    step_ratio = num_train_timesteps // num_inference_steps
    forward_steps = ((np.arange(0, num_inference_steps) * step_ratio).round() + steps_offset).astype(np.int64).tolist()

    timesteps = forward_steps[:-1]
    # With a single inference step there is no penultimate entry to repeat
    timesteps.append(timesteps[-1] if timesteps else forward_steps[-1])
    timesteps.append(forward_steps[-1])
    timesteps.reverse()
    return timesteps


@dataclass(frozen=True)
class NoiseSchedule:
    """
    Immutable noise schedule.

    Attributes:
        num_train_timesteps: Number of diffusion steps used in training
        num_inference_steps: Number of denoising steps at inference
        betas: Variance added at each training timestep
        alphas: ``1 - betas``
        alphas_cumprod: Cumulative product of ``alphas``
        alpha_t: ``sqrt(alphas_cumprod)``, signal scale
        sigma_t: ``sqrt(1 - alphas_cumprod)``, noise scale
        lambda_t: ``log(alpha_t) - log(sigma_t)``, log signal-to-noise ratio
        timesteps: Training timesteps indexed by inference step
        init_noise_sigma: Standard deviation of the initial noise
    """

    num_train_timesteps: int
    num_inference_steps: int
    betas: torch.Tensor
    alphas: torch.Tensor
    alphas_cumprod: torch.Tensor
    alpha_t: torch.Tensor
    sigma_t: torch.Tensor
    lambda_t: torch.Tensor
    timesteps: List[int]
    init_noise_sigma: float = 1.0

    def start_step(self, strength: float) -> int:
        """
        Index into ``timesteps`` where a run of the given strength begins.

        ``n * strength`` is rounded half up. Strengths above 1 start from
        the first timestep.
        """
        if strength < 0:
            raise ValueError(f"strength must be non-negative, got {strength}")
        skipped = math.floor(self.num_inference_steps * strength + 0.5)
        return max(self.num_inference_steps - skipped, 0)

    def alpha_prod(self, timestep: int) -> float:
        """Cumulative alpha product at a timestep, negative timesteps clamp to 0."""
        return self.alphas_cumprod[max(0, timestep)].item()


def build_schedule(
    num_inference_steps: int = 50,
    num_train_timesteps: int = 1000,
    beta_schedule: Union[str, BetaSchedule] = BetaSchedule.SCALED_LINEAR,
    beta_start: float = 0.00085,
    beta_end: float = 0.012,
    steps_offset: int = 1,
) -> NoiseSchedule:
    """
    Build a noise schedule.

    Args:
        num_inference_steps: Number of denoising steps to schedule
        num_train_timesteps: Number of training diffusion steps
        beta_schedule: How to map ``beta_start``..``beta_end`` to betas
        beta_start: First beta
        beta_end: Last beta
        steps_offset: Offset added to every inference timestep

    Returns:
        Schedule ready for sampling
    """
    if num_inference_steps < 1:
        raise ValueError(f"num_inference_steps must be >= 1, got {num_inference_steps}")
    if num_train_timesteps < 2:
        raise ValueError(f"num_train_timesteps must be >= 2, got {num_train_timesteps}")
    if num_inference_steps > num_train_timesteps:
        raise ValueError(
            f"num_inference_steps ({num_inference_steps}) cannot exceed "
            f"num_train_timesteps ({num_train_timesteps})"
        )

    betas = make_betas(num_train_timesteps, beta_start, beta_end, beta_schedule)
    alphas = 1.0 - betas
    alphas_cumprod = torch.cumprod(alphas, dim=0)

    alpha_t = torch.sqrt(alphas_cumprod)
    sigma_t = torch.sqrt(1.0 - alphas_cumprod)
    lambda_t = torch.log(alpha_t) - torch.log(sigma_t)

    return NoiseSchedule(
        num_train_timesteps=num_train_timesteps,
        num_inference_steps=num_inference_steps,
        betas=betas,
        alphas=alphas,
        alphas_cumprod=alphas_cumprod,
        alpha_t=alpha_t,
        sigma_t=sigma_t,
        lambda_t=lambda_t,
        timesteps=make_timesteps(num_inference_steps, num_train_timesteps, steps_offset),
    )


def sqrt_alpha_beta(alpha_prod: float):
    """``(sqrt(alpha_prod), sqrt(1 - alpha_prod))``, the forward-process mixing weights."""
    return math.sqrt(alpha_prod), math.sqrt(1.0 - alpha_prod)
