import threading
import unittest
from concurrent.futures import ThreadPoolExecutor

from backend.connectivity import ConnectivityProbe, StaticNetworkState
from backend.errors import ErrorKind, TimeBankError
from backend.services import TimeBankService
from backend.storage import InMemoryLocalStorage
from backend.tests.fakes import FlakyStore


class ConnectivityProbeTests(unittest.TestCase):
    def setUp(self):
        self.store = FlakyStore()
        self.network = StaticNetworkState(online=True)
        self.probe = ConnectivityProbe(
            self.store, self.network, probe_timeout=0.2, ping_timeout=0.2
        )

    def test_probe_succeeds_on_system_document(self):
        self.assertTrue(self.probe.probe())
        self.assertEqual(self.store.calls["get"], 1)
        self.assertEqual(self.store.calls["query"], 0)

    def test_probe_falls_back_to_minimal_query(self):
        self.store.fail(TimeBankError(ErrorKind.PERMISSION_DENIED, "rules"), "get")
        self.assertTrue(self.probe.probe())
        self.assertEqual(self.store.calls["query"], 1)

    def test_probe_fails_when_every_attempt_fails(self):
        self.store.fail(TimeBankError(ErrorKind.NETWORK, "down"))
        self.assertFalse(self.probe.probe())
        self.assertEqual(self.store.calls["get"], 1)
        self.assertEqual(self.store.calls["query"], 1)

    def test_probe_short_circuits_when_offline(self):
        self.network.online = False
        self.assertFalse(self.probe.probe())
        self.assertEqual(sum(self.store.calls.values()), 0)

    def test_probe_treats_slow_reads_as_failure(self):
        self.store.delay = 0.5
        self.assertFalse(self.probe.probe())

    def test_ping_offline(self):
        self.network.online = False
        with self.assertRaises(TimeBankError) as ctx:
            self.probe.ping()
        self.assertEqual(ctx.exception.kind, ErrorKind.OFFLINE)

    def test_ping_reports_network_on_connectivity_failure(self):
        self.store.fail(TimeBankError(ErrorKind.UNAVAILABLE, "unavailable"))
        with self.assertRaises(TimeBankError) as ctx:
            self.probe.ping()
        self.assertEqual(ctx.exception.kind, ErrorKind.NETWORK)

    def test_ping_propagates_other_errors(self):
        self.store.fail(TimeBankError(ErrorKind.AUTH_EXPIRED, "expired"))
        with self.assertRaises(TimeBankError) as ctx:
            self.probe.ping()
        self.assertEqual(ctx.exception.kind, ErrorKind.AUTH_EXPIRED)

    def test_reads_run_on_the_given_executor(self):
        threads = []
        self.store.get = lambda *args, **kwargs: threads.append(threading.current_thread().name)
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="shared-pool") as executor:
            checker = ConnectivityProbe(self.store, self.network, executor=executor)
            checker.ping()
            data = TimeBankService(self.store, InMemoryLocalStorage(), checker)
            self.assertIs(data.executor, executor)
        self.assertTrue(threads[0].startswith("shared-pool"))


if __name__ == "__main__":
    unittest.main()
