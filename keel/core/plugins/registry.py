"""
Registro de plugins por categoría.

Se llena una vez al arrancar el proceso y luego se congela. Qué plugin aplica a un
repo/environment se re-evalúa en cada llamada (no hay binding persistente).
"""

from pathlib import Path
from typing import Dict, List, Optional, Type

from keel.core.errors import PluginNotFound
from keel.core.plugins.contracts import Plugin, PluginCategory
from keel.core.spec.models import EnvironmentSpec


class PluginRegistry:
    """Catálogo de plugins; trata todas las categorías de forma uniforme."""

    def __init__(self):
        self._plugins: Dict[PluginCategory, List[Type[Plugin]]] = {c: [] for c in PluginCategory}
        self._frozen = False

    def register(self, plugin_cls: Type[Plugin]) -> Type[Plugin]:
        """Registra una clase de plugin (usable como decorador)."""
        if self._frozen:
            raise RuntimeError("El registro de plugins ya está congelado")
        if not (isinstance(plugin_cls, type) and issubclass(plugin_cls, Plugin)):
            raise TypeError(f"{plugin_cls!r} no es un Plugin")
        if not plugin_cls.id:
            raise ValueError(f"{plugin_cls.__name__} no declara id")
        category = PluginCategory(plugin_cls.category)
        if any(p.id == plugin_cls.id for p in self._plugins[category]):
            raise ValueError(f"Plugin '{plugin_cls.id}' ya registrado en {category.value}")
        self._plugins[category].append(plugin_cls)
        return plugin_cls

    def freeze(self) -> "PluginRegistry":
        self._frozen = True
        return self

    def plugins(self, category: PluginCategory) -> List[Type[Plugin]]:
        """Plugins de la categoría en orden de registro."""
        return list(self._plugins[PluginCategory(category)])

    def get(self, category: PluginCategory, plugin_id: str) -> Type[Plugin]:
        for plugin_cls in self._plugins[PluginCategory(category)]:
            if plugin_cls.id == plugin_id:
                return plugin_cls
        raise PluginNotFound(PluginCategory(category).value)

    def _matches(
        self,
        plugin_cls: Type[Plugin],
        root_dir: Path,
        spec: EnvironmentSpec,
        environment: Optional[str],
    ) -> bool:
        if not plugin_cls.should_load(root_dir, spec):
            return False
        return environment is None or plugin_cls.applies_to(spec, environment)

    def resolve_all(
        self,
        category: PluginCategory,
        root_dir: Path,
        spec: EnvironmentSpec,
        environment: Optional[str] = None,
    ) -> List[Type[Plugin]]:
        """Todos los plugins de la categoría que aplican, en orden de registro."""
        return [
            p for p in self._plugins[PluginCategory(category)]
            if self._matches(p, root_dir, spec, environment)
        ]

    def resolve_optional(
        self,
        category: PluginCategory,
        root_dir: Path,
        spec: EnvironmentSpec,
        environment: Optional[str] = None,
    ) -> Optional[Type[Plugin]]:
        for plugin_cls in self._plugins[PluginCategory(category)]:
            if self._matches(plugin_cls, root_dir, spec, environment):
                return plugin_cls
        return None

    def resolve(
        self,
        category: PluginCategory,
        root_dir: Path,
        spec: EnvironmentSpec,
        environment: Optional[str] = None,
    ) -> Type[Plugin]:
        """
        Primer plugin de la categoría cuyo should_load (y applies_to, si se pasa
        environment) es verdadero.

        Raises:
            PluginNotFound: si ninguno aplica
        """
        plugin_cls = self.resolve_optional(category, root_dir, spec, environment)
        if plugin_cls is None:
            raise PluginNotFound(PluginCategory(category).value, spec.name, environment)
        return plugin_cls

    def __len__(self) -> int:
        return sum(len(v) for v in self._plugins.values())
