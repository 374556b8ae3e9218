# plms_diffusion/configs/__init__.py
from .scheduler import PNDMSchedulerConfig, stable_diffusion_v1, linear_ddpm

__all__ = ['PNDMSchedulerConfig', 'stable_diffusion_v1', 'linear_ddpm']
