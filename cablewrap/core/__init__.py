"""Core services: rotation accumulator, motion classifier, unwind maneuver, engine, mount."""
from cablewrap.core.engine import CableWrapEngine
from cablewrap.core.mount_service import AlpacaMount, SimulatedMount, create_mount

__all__ = ["AlpacaMount", "CableWrapEngine", "SimulatedMount", "create_mount"]
