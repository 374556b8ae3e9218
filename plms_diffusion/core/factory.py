# plms_diffusion/core/factory.py
import logging
from typing import Dict, Type, Any

from .registry import Registry

logger = logging.getLogger(__name__)

class ComponentFactory:
    """
    Factory for creating components from configuration.

    This centralizes component creation, similar to how HuggingFace's
    AutoModel factory works: the ``type`` key of a config section selects
    the registered implementation.
    """

    @staticmethod
    def create_component(component_type: str,
                         config: Dict[str, Any],
                         base_class: Type) -> Any:
        """
        Create component instance from configuration.

        Args:
            component_type: Type of component to create
            config: Component configuration
            base_class: Base class for component registry

        Returns:
            Component instance
        """
        registry = Registry.get(base_class)
        logger.info(f"Creating {base_class.__name__} of type {component_type}")
        return registry.create(component_type, config)

    @staticmethod
    def create_from_config(config: Dict[str, Any], base_class: Type) -> Dict[str, Any]:
        """
        Create multiple components from configuration.

        Args:
            config: Configuration with a ``components`` section
            base_class: Base class for component registry

        Returns:
            Dictionary mapping component names to instances
        """
        components = {}

        for name, component_config in config.get("components", {}).items():
            component_config = dict(component_config)
            component_type = component_config.pop("type", None)
            if component_type:
                components[name] = ComponentFactory.create_component(
                    component_type, component_config, base_class)
            else:
                logger.warning(f"Component '{name}' has no type, skipping")

        return components
