"""Registry of program-representation backends."""

from __future__ import annotations

from pathlib import Path

from repair.representation import Representation

REPRESENTATION_REGISTRY: dict[str, type[Representation]] = {}
EXTENSION_REGISTRY: dict[str, str] = {}


def register_representation(name: str, extensions: tuple[str, ...] = ()):
    """Register a representation class by name and source-file extensions."""

    def decorator(cls: type[Representation]) -> type[Representation]:
        REPRESENTATION_REGISTRY[name] = cls
        cls.key = name
        for extension in extensions:
            EXTENSION_REGISTRY[extension.lower()] = name
        return cls

    return decorator


def get_representation(name: str, **kwargs) -> Representation:
    """Instantiate a registered representation backend."""

    if name not in REPRESENTATION_REGISTRY:
        available = ", ".join(sorted(REPRESENTATION_REGISTRY)) or "<none>"
        raise ValueError(f"Unknown representation {name}. Available: {available}")
    return REPRESENTATION_REGISTRY[name](**kwargs)


def representation_for_path(path: str | Path, default: str = "lines") -> str:
    """Backend name for a program file, chosen by its extension."""

    return EXTENSION_REGISTRY.get(Path(path).suffix.lower(), default)
