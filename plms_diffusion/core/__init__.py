# plms_diffusion/core/__init__.py
from .registry import Registry, register_component
from .factory import ComponentFactory
from .config import ConfigManager

__all__ = [
    'Registry',
    'register_component',
    'ComponentFactory',
    'ConfigManager'
]
