# plms_diffusion/core/registry.py
from typing import Dict, Type, Any, TypeVar, Generic, Callable

T = TypeVar('T')

class Registry(Generic[T]):
    """
    Registry for component types.

    Maintains a mapping of component names to their implementations
    for one base class, so schedulers can be looked up by the name
    stored in a configuration file.
    """

    _instances: Dict[Type, "Registry"] = {}

    def __init__(self, base_class: Type[T]):
        """
        Initialize registry for a base class.

        Args:
            base_class: Base class for registered components
        """
        self.base_class = base_class
        self.registry: Dict[str, Type[T]] = {}

    @classmethod
    def get(cls, base_class: Type[T]) -> "Registry[T]":
        """
        Get or create registry for base class.

        Args:
            base_class: Base class for registry

        Returns:
            Registry for base class
        """
        if base_class not in cls._instances:
            cls._instances[base_class] = cls(base_class)
        return cls._instances[base_class]

    def register(self, name: str, component_class: Type[T]) -> Type[T]:
        """
        Register component class.

        Args:
            name: Registration name
            component_class: Component class

        Returns:
            Component class for decorator usage
        """
        if not issubclass(component_class, self.base_class):
            raise TypeError(
                f"{component_class.__name__} is not a subclass of {self.base_class.__name__}"
            )
        self.registry[name] = component_class
        return component_class

    def create(self, name: str, config: Dict[str, Any]) -> T:
        """
        Create component instance.

        Components exposing a ``from_config`` classmethod are built through
        it, anything else receives the config dict as its only argument.

        Args:
            name: Component type name
            config: Component configuration

        Returns:
            Component instance
        """
        if name not in self.registry:
            raise KeyError(f"No component registered as '{name}'")
        component_class = self.registry[name]
        if hasattr(component_class, "from_config"):
            return component_class.from_config(config)
        return component_class(config)

    def list_available(self) -> Dict[str, Type[T]]:
        """
        Get available component types.

        Returns:
            Dictionary mapping names to classes
        """
        return self.registry.copy()


def register_component(name: str, base_class: Type[T]) -> Callable[[Type[T]], Type[T]]:
    """Class decorator registering a component under ``name`` for ``base_class``."""
    def decorator(component_class: Type[T]) -> Type[T]:
        return Registry.get(base_class).register(name, component_class)
    return decorator
