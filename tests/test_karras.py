"""
Unit tests for sigma-space schedule conversions
"""

import math

import pytest
import torch

from plms_diffusion.schedulers import PNDMScheduler, Scheduler
from plms_diffusion.schedulers.karras import (
    convert_to_karras,
    convert_to_timesteps,
    sigmas_from_alphas_cumprod,
)


def test_karras_spans_sigma_range():
    sigmas = [14.6, 8.0, 3.0, 1.0, 0.2, 0.03]

    karras = convert_to_karras(sigmas, 10)

    assert karras.dtype == torch.float64
    assert karras.shape == (10,)
    assert karras[0].item() == pytest.approx(14.6)
    assert karras[-1].item() == pytest.approx(0.03)
    assert torch.all(karras[1:] < karras[:-1])


def test_karras_concentrates_steps_near_small_sigma():
    karras = convert_to_karras([10.0, 0.1], 20)
    gaps = karras[:-1] - karras[1:]

    assert torch.all(gaps[1:] < gaps[:-1])


def test_karras_matches_closed_form():
    karras = convert_to_karras(torch.tensor([4.0, 0.5]), 3, rho=7.0)

    mid = ((4.0 ** (1 / 7) + 0.5 ** (1 / 7)) / 2) ** 7
    torch.testing.assert_close(karras, torch.tensor([4.0, mid, 0.5], dtype=torch.float64))


@pytest.mark.parametrize("num_steps", [0, 1])
def test_karras_rejects_degenerate_step_count(num_steps):
    with pytest.raises(ValueError):
        convert_to_karras([10.0, 0.1], num_steps)


def test_training_sigmas_map_to_their_indices():
    scheduler = PNDMScheduler()
    sigmas = sigmas_from_alphas_cumprod(scheduler.alphas_cumprod)
    log_sigmas = torch.log(sigmas)

    timesteps = convert_to_timesteps(sigmas, log_sigmas)

    torch.testing.assert_close(timesteps, torch.arange(1000, dtype=torch.float64))


def test_interpolates_between_neighbours():
    log_sigmas = torch.log(torch.tensor([0.1, 0.2, 0.4, 0.8, 1.6], dtype=torch.float64))
    between = math.exp((log_sigmas[2].item() + log_sigmas[3].item()) / 2)

    timesteps = convert_to_timesteps([between], log_sigmas)

    assert timesteps.tolist() == pytest.approx([2.5])


def test_out_of_range_sigmas_clamp_to_ends():
    log_sigmas = torch.log(torch.tensor([0.1, 0.2, 0.4, 0.8], dtype=torch.float64))

    timesteps = convert_to_timesteps([0.01, 100.0], log_sigmas)

    assert timesteps.tolist() == pytest.approx([0.0, 3.0])


def test_requires_two_log_sigmas():
    with pytest.raises(ValueError):
        convert_to_timesteps([0.5], [0.0])


def test_exposed_on_scheduler_interface():
    karras = Scheduler.convert_to_karras([10.0, 0.1], 5)
    assert torch.equal(karras, convert_to_karras([10.0, 0.1], 5))

    log_sigmas = [math.log(0.1), math.log(1.0)]
    assert torch.equal(
        PNDMScheduler.convert_to_timesteps([0.5], log_sigmas),
        convert_to_timesteps([0.5], log_sigmas),
    )
