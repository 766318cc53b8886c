"""
Candados exclusivos por clave dentro del proceso.

Complementan el bloqueo de fila (SELECT ... FOR UPDATE) de la base de datos:
serializan en el mismo proceso los cierres de una caja y las reemisiones de
un comprobante, incluso con motores que ignoran FOR UPDATE (SQLite).
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class LockTimeout(Exception):
    """No se obtuvo el candado dentro del tiempo de espera"""

    def __init__(self, key: Hashable, timeout: float):
        super().__init__(f"Recurso {key!r} ocupado (espera {timeout}s)")
        self.key = key
        self.timeout = timeout


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockRegistry:
    """
    Un candado por clave. La entrada se descarta cuando nadie lo tiene ni lo
    espera, de modo que el registro solo guarda las claves en uso.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, _Entry] = {}

    def size(self) -> int:
        """Claves con candado tomado o en espera"""
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def acquire(self, key: Hashable, timeout: float) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            if timeout > 0:
                acquired = entry.lock.acquire(timeout=timeout)
            else:
                acquired = entry.lock.acquire(blocking=False)
            if not acquired:
                raise LockTimeout(key, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


registry = KeyedLockRegistry()


def cash_register_key(cash_register_id: int) -> tuple:
    return ("cash_register", cash_register_id)


def issued_document_key(issued_document_id: int) -> tuple:
    return ("issued_document", issued_document_id)
