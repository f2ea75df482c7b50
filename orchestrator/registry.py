"""
Orchestrator - Helper Registry.

============================================================
RESPONSIBILITY
============================================================
Turns a configuration into loaded helper instances.

- Discover required identities (ordered, deduplicated)
- Map identities to helper constructors per namespace
- Apply the minimum host version gate
- Construct helpers with their shared dependencies

============================================================
NAMESPACES
============================================================
default      Built-in helpers, keyed by module name.
             Base path: <modules_root>/default/<identity>
third_party  User-installed helpers, keyed by identity.
             Registered from the "mirror_runtime.helpers"
             entry-point group or by calling register().
             Base path: <modules_root>/<identity>

The default namespace is consulted first.

============================================================
FAILURE POLICY
============================================================
load() never raises. A missing, failing or incompatible
helper is logged as a warning and skipped.

============================================================
"""

import inspect
import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .models import HelperInstance, ModuleDescriptor
from core.constants import (
    DEFAULT_MODULES,
    DEFAULT_NAMESPACE,
    HELPER_ENTRY_POINT_GROUP,
    HOST_VERSION,
    THIRD_PARTY_NAMESPACE,
)
from core.exceptions import DiscoveryWarning, InvalidVersionFormat, wrap_exception
from core.versioning import is_version_satisfied
from helpers.base import HelperProtocol


HelperConstructor = Callable[..., HelperProtocol]


# ============================================================
# DISCOVERY
# ============================================================

def discover_identities(descriptors: Iterable[ModuleDescriptor]) -> List[str]:
    """
    Get the identities a configuration requires.

    Disabled entries are skipped. The first enabled occurrence
    of an identity fixes its position.
    """
    identities: List[str] = []
    for descriptor in descriptors:
        if descriptor.disabled or descriptor.identity in identities:
            continue
        identities.append(descriptor.identity)
    return identities


# ============================================================
# HELPER FACTORY
# ============================================================

class HelperFactory:
    """
    Constructs helpers with dependency injection.

    A constructor receives the shared dependencies whose names
    match its keyword parameters, and nothing else.
    """

    def __init__(self, shared_dependencies: Optional[Dict[str, Any]] = None):
        self._shared = dict(shared_dependencies or {})

    def create(self, constructor: HelperConstructor) -> HelperProtocol:
        """Create a helper instance."""
        try:
            signature = inspect.signature(constructor)
        except (TypeError, ValueError):
            return constructor()

        params = signature.parameters.values()
        if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params):
            return constructor(**self._shared)

        kwargs = {
            name: value
            for name, value in self._shared.items()
            if name in signature.parameters
        }
        return constructor(**kwargs)

    def add_shared_dependency(self, name: str, instance: Any) -> None:
        """Add a shared dependency."""
        self._shared[name] = instance

    def get_shared_dependency(self, name: str) -> Optional[Any]:
        """Get a shared dependency."""
        return self._shared.get(name)


# ============================================================
# HELPER REGISTRY
# ============================================================

@dataclass
class _Resolution:
    namespace: str
    constructor: HelperConstructor
    path: Path


class HelperRegistry:
    """
    Explicit identity -> constructor registry.

    Handles:
    - Registration per namespace
    - Discovery from module descriptors
    - Resolution, version gating and construction
    """

    def __init__(
        self,
        modules_root: Union[str, Path] = "modules",
        host_version: str = HOST_VERSION,
        factory: Optional[HelperFactory] = None,
    ):
        self._modules_root = Path(modules_root)
        self._host_version = host_version
        self._factory = factory or HelperFactory({"host_version": host_version})
        self._constructors: Dict[str, Dict[str, HelperConstructor]] = {
            DEFAULT_NAMESPACE: {},
            THIRD_PARTY_NAMESPACE: {},
        }
        self._logger = logging.getLogger(__name__)

    @property
    def host_version(self) -> str:
        return self._host_version

    # --------------------------------------------------------
    # Registration
    # --------------------------------------------------------

    def register(
        self,
        identity: str,
        constructor: HelperConstructor,
        namespace: str = THIRD_PARTY_NAMESPACE,
    ) -> None:
        """
        Register a helper constructor.

        Args:
            identity: Module name (default namespace) or identity (third party)
            constructor: Callable returning a helper instance
            namespace: "default" or "third_party"
        """
        if namespace not in self._constructors:
            raise ValueError(f"Unknown helper namespace: {namespace}")

        self._constructors[namespace][identity] = constructor
        self._logger.debug(f"Registered helper: {namespace}/{identity}")

    def register_builtins(self, helpers: Mapping[str, HelperConstructor]) -> None:
        """Register built-in helpers in the default namespace."""
        for name, constructor in helpers.items():
            self.register(name, constructor, namespace=DEFAULT_NAMESPACE)

    def register_entry_points(self, group: str = HELPER_ENTRY_POINT_GROUP) -> List[str]:
        """
        Register third-party helpers advertised by installed distributions.

        Returns:
            Identities that were registered
        """
        registered = []
        for entry_point in entry_points(group=group):
            try:
                constructor = entry_point.load()
            except Exception as e:
                self._logger.warning(
                    f"Could not load helper entry point '{entry_point.name}': {e}"
                )
                continue
            self.register(entry_point.name, constructor, namespace=THIRD_PARTY_NAMESPACE)
            registered.append(entry_point.name)
        return registered

    def is_registered(self, identity: str) -> bool:
        return self._resolve(identity) is not None

    def describe(self) -> Dict[str, List[str]]:
        """Get registered names per namespace."""
        return {
            namespace: sorted(constructors)
            for namespace, constructors in self._constructors.items()
        }

    # --------------------------------------------------------
    # Discovery
    # --------------------------------------------------------

    def discover(self, descriptors: Iterable[ModuleDescriptor]) -> List[str]:
        """Get the ordered, deduplicated identities to load."""
        identities = discover_identities(descriptors)
        self._logger.info(f"Discovered {len(identities)} modules: {', '.join(identities)}")
        return identities

    # --------------------------------------------------------
    # Loading
    # --------------------------------------------------------

    def _resolve(self, identity: str) -> Optional[_Resolution]:
        name = identity.split("/")[-1]

        if name in DEFAULT_MODULES:
            constructor = self._constructors[DEFAULT_NAMESPACE].get(name)
            if constructor is not None:
                return _Resolution(
                    namespace=DEFAULT_NAMESPACE,
                    constructor=constructor,
                    path=self._modules_root / "default" / identity,
                )

        constructor = self._constructors[THIRD_PARTY_NAMESPACE].get(identity)
        if constructor is not None:
            return _Resolution(
                namespace=THIRD_PARTY_NAMESPACE,
                constructor=constructor,
                path=self._modules_root / identity,
            )
        return None

    def _skip(self, identity: str, message: str, **kwargs) -> None:
        warning = DiscoveryWarning(message, identity=identity, **kwargs)
        self._logger.warning(warning.to_log_format())

    def load(self, identity: str) -> Optional[HelperInstance]:
        """
        Load one helper.

        Args:
            identity: Module identity

        Returns:
            HelperInstance, or None if the helper is missing,
            failed to construct, or needs a newer host
        """
        name = identity.split("/")[-1]
        resolution = self._resolve(identity)
        if resolution is None:
            # Expected for presentation-only modules
            self._skip(identity, f"No helper found for module: {name}")
            return None

        try:
            helper = self._factory.create(resolution.constructor)
        except Exception as e:
            wrapped = wrap_exception(
                e, DiscoveryWarning, message=f"Could not construct helper: {name}", identity=identity
            )
            self._logger.warning(wrapped.to_log_format())
            return None

        minimum = getattr(helper, "requires_version", None)
        if minimum:
            self._logger.info(
                f"Check host version for helper '{name}' - "
                f"Minimum version: {minimum} - Current version: {self._host_version}"
            )
            try:
                satisfied = is_version_satisfied(self._host_version, minimum)
            except InvalidVersionFormat as e:
                self._skip(identity, f"Invalid version requirement. Skip module: '{name}'", cause=e)
                return None
            if not satisfied:
                self._skip(
                    identity,
                    f"Version is incorrect. Skip module: '{name}'",
                    context={"requires_version": minimum, "host_version": self._host_version},
                )
                return None
            self._logger.info("Version is ok!")

        try:
            helper.set_name(name)
            helper.set_path(resolution.path.resolve())
        except Exception as e:
            self._skip(identity, f"Helper does not accept its identity: {name}", cause=e)
            return None

        try:
            helper.loaded()
        except Exception as e:
            self._logger.error(f"Error in loaded() of helper {name}: {e}", exc_info=True)

        return HelperInstance(
            identity=identity,
            helper=helper,
            path=resolution.path.resolve(),
            namespace=resolution.namespace,
        )


__all__ = [
    "discover_identities",
    "HelperConstructor",
    "HelperFactory",
    "HelperRegistry",
]
