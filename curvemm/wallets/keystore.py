"""Key store interface and dotted-path loader for pluggable collaborators."""

import importlib
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyStore(Protocol):
    """Turns stored ciphertext into signing material.

    Implementations raise ``curvemm.errors.KeyDecryptionError`` for corrupt
    or invalid ciphertext.
    """

    def decrypt(self, ciphertext: str) -> str:
        ...


def load_object(path: str) -> Any:
    """Import ``"package.module:attr"`` and return the attribute.

    If the attribute is a class or factory function it is called with no
    arguments and the instance returned.

    Raises:
        ValueError: If *path* is malformed or the attribute is missing.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attr', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"{module_name} has no attribute {attr!r}")
    return target() if callable(target) else target
