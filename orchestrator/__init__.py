"""
Orchestrator Package - Helper Lifecycle Layer.

============================================================
PACKAGE OVERVIEW
============================================================
This package is the SINGLE owner of the helper lifecycle.
It decides which helpers load, wires them to the shared
transport, starts and stops them, and ends the process.

============================================================
CORE PRINCIPLES
============================================================
1. A helper's failure stays inside that helper
2. Every helper is wired before any helper starts
3. The transport closes only after every stop settled
4. Shutdown is bounded by a hard deadline

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     Orchestrator                    |
    |-----------------------------------------------------|
    |  HelperRegistry |  discovery, version gate, load   |
    |  StateManager   |  IDLE -> ... -> STOPPED          |
    |  Transport      |  router + realtime channel       |
    |  CLI            |  Command-line interface          |
    +-----------------------------------------------------+

============================================================
QUICK START
============================================================
Command line usage::

    python app.py
    python app.py --config config/config.yaml --shutdown-deadline 5
    python app.py --list-helpers

Programmatic usage::

    import asyncio
    from orchestrator import Orchestrator, OrchestratorConfig, HelperRegistry
    from orchestrator import parse_descriptors
    from transport import TransportServer

    async def main():
        configuration = {"port": 8080, "modules": [{"module": "clock"}]}

        registry = HelperRegistry()
        registry.register("clock", ClockHelper, namespace="default")

        orchestrator = Orchestrator(
            config=OrchestratorConfig(),
            registry=registry,
            transport=TransportServer(configuration),
        )
        return await orchestrator.run(parse_descriptors(configuration))

    asyncio.run(main())

============================================================
EXPORTS
============================================================
"""

# ============================================================
# Models
# ============================================================
from orchestrator.models import (
    # Configuration input
    ModuleDescriptor,
    parse_descriptors,

    # Runtime records
    HelperStatus,
    HelperInstance,
    UnitOutcome,
    BatchResult,

    # Configuration
    OrchestratorConfig,
)

# ============================================================
# Registry
# ============================================================
from orchestrator.registry import (
    discover_identities,
    HelperFactory,
    HelperRegistry,
)

# ============================================================
# Core
# ============================================================
from orchestrator.core import (
    # Main orchestrator
    Orchestrator,

    # Factory function
    create_orchestrator,

    # Logging setup
    setup_logging,
)

# ============================================================
# Package metadata
# ============================================================
__version__ = "1.0.0"

__all__ = [
    # Models
    "ModuleDescriptor",
    "parse_descriptors",
    "HelperStatus",
    "HelperInstance",
    "UnitOutcome",
    "BatchResult",
    "OrchestratorConfig",

    # Registry
    "discover_identities",
    "HelperFactory",
    "HelperRegistry",

    # Core
    "Orchestrator",
    "create_orchestrator",
    "setup_logging",
]
