# plms_diffusion/pipelines/__init__.py
from .denoise import DenoisingLoop

__all__ = ['DenoisingLoop']
