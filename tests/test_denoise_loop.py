"""
Integration tests driving the scheduler through a denoising loop
"""

import pytest
import torch

from plms_diffusion.pipelines import DenoisingLoop
from plms_diffusion.schedulers import PNDMScheduler


class RecordingModel:
    """Stand-in network predicting a fixed fraction of the sample as noise."""

    def __init__(self, scale=0.1):
        self.scale = scale
        self.timesteps = []

    def __call__(self, sample, timestep):
        self.timesteps.append(timestep)
        return sample * self.scale


@pytest.fixture
def latents():
    return torch.randn(1, 4, 8, 8, generator=torch.Generator().manual_seed(7))


def test_full_run_calls_model_once_per_timestep(latents):
    scheduler = PNDMScheduler(num_inference_steps=20)
    model = RecordingModel()

    result = DenoisingLoop(scheduler, model)(latents, progress=False)

    assert model.timesteps == scheduler.timesteps
    assert result.shape == latents.shape
    assert torch.isfinite(result).all()
    assert len(scheduler.model_outputs) == 21


def test_partial_run_starts_later(latents):
    scheduler = PNDMScheduler(num_inference_steps=20)
    model = RecordingModel()
    noise = torch.randn_like(latents)

    DenoisingLoop(scheduler, model)(latents, strength=0.5, noise=noise, progress=False)

    assert model.timesteps == scheduler.calculate_timesteps(0.5)
    assert len(model.timesteps) == 11


def test_partial_run_requires_noise(latents):
    loop = DenoisingLoop(PNDMScheduler(num_inference_steps=20), RecordingModel())
    with pytest.raises(ValueError, match="noise is required"):
        loop(latents, strength=0.5, progress=False)


def test_runs_are_repeatable(latents):
    scheduler = PNDMScheduler(num_inference_steps=10)
    loop = DenoisingLoop(scheduler, RecordingModel())

    first = loop(latents, progress=False)
    second = loop(latents, progress=False)

    assert torch.equal(first, second)


def test_loop_matches_manual_stepping(latents):
    model = RecordingModel(scale=0.05)
    loop_result = DenoisingLoop(PNDMScheduler(num_inference_steps=8), model)(latents, progress=False)

    scheduler = PNDMScheduler(num_inference_steps=8)
    sample = latents
    for t in scheduler.timesteps:
        sample = scheduler.step(sample * 0.05, t, sample)

    assert torch.equal(loop_result, sample)
