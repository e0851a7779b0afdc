# oncegate/services/errors.py
from __future__ import annotations


class GateError(Exception):
    """Base de todos los resultados negativos del gate."""


class InvalidInput(GateError):
    pass


class AlreadyGranted(GateError):
    def __init__(self, filename: str):
        super().__init__(f"already granted: {filename}")
        self.filename = filename


class ObjectMissing(GateError):
    def __init__(self, filename: str):
        super().__init__(f"object not found: {filename}")
        self.filename = filename


class CollaboratorFailure(GateError):
    """Falló una llamada al record/object store; `operation` la identifica."""

    def __init__(self, operation: str):
        super().__init__(operation)
        self.operation = operation


class DeliveryFailure(CollaboratorFailure):
    """Grant confirmado, pero el stream de bytes no se pudo entregar."""
