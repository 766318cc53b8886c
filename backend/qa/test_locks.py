"""
Tests del registro de candados por clave
"""
import threading

import pytest

from restopos.infrastructure.locks import KeyedLockRegistry, LockTimeout, cash_register_key, issued_document_key


class TestCandadosPorClave:

    def test_clave_ocupada_sin_espera(self, locks):
        with locks.acquire(cash_register_key(1), 1):
            with pytest.raises(LockTimeout):
                with locks.acquire(cash_register_key(1), 0):
                    pass

    def test_claves_distintas_no_se_bloquean(self, locks):
        with locks.acquire(cash_register_key(1), 1):
            with locks.acquire(issued_document_key(1), 0):
                assert locks.size() == 2

    def test_entradas_liberadas_al_soltar(self, locks):
        for register_id in range(100):
            with locks.acquire(cash_register_key(register_id), 0):
                pass
        assert locks.size() == 0

    def test_entrada_liberada_tras_timeout(self, locks):
        with locks.acquire(cash_register_key(5), 1):
            with pytest.raises(LockTimeout):
                with locks.acquire(cash_register_key(5), 0):
                    pass
            assert locks.size() == 1
        assert locks.size() == 0

    def test_entrada_liberada_si_falla_el_bloque(self, locks):
        with pytest.raises(RuntimeError):
            with locks.acquire(cash_register_key(7), 0):
                raise RuntimeError("error dentro del cierre")
        assert locks.size() == 0

    def test_espera_entre_hilos(self):
        locks = KeyedLockRegistry()
        key = cash_register_key(1)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.acquire(key, 1):
                held.set()
                release.wait(2)

        t = threading.Thread(target=holder)
        t.start()
        held.wait(2)
        release.set()
        with locks.acquire(key, 2):
            pass
        t.join(2)

        assert locks.size() == 0
