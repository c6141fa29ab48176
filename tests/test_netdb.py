from os import mkdir, remove
from os.path import join
from tempfile import TemporaryDirectory
from threading import Barrier, Thread
from unittest import TestCase, main
from unittest.mock import patch

import netdb
from netdb import BackendKind, BackendUnavailable, NetDB, NetDBConfig, ResolverState, UnavailableReason
from netdb.native_db import NativeProtocolsDB, NativeServicesDB

protocols_text = "ip\t0\tIP\ntcp\t6\tTCP\nudp\t17\tUDP\n"
services_text = "ftp\t21/tcp\nbootps\t67/udp\nbiff\t512/udp\tcomsat\n"

native_unavailable = BackendUnavailable(BackendKind.NATIVE, UnavailableReason.UNSUPPORTED_PLATFORM, "test")


class NetDBTestCase(TestCase):
    def setUp(self):
        self.tmpdir = TemporaryDirectory()
        self.protocols_file = self.write_file("protocols", protocols_text)
        self.services_file = self.write_file("services", services_text)

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_file(self, name, text):
        path = join(self.tmpdir.name, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def config(self, **kwargs):
        kwargs.setdefault("protocols_file", self.protocols_file)
        kwargs.setdefault("services_file", self.services_file)
        return NetDBConfig(**kwargs)

    def reasons(self, db, database):
        return [(p.kind, p.reason) for p in db.probes if p.database == database]


class TestResolution(NetDBTestCase):
    def test_lazy(self):
        db = NetDB(self.config())
        self.assertEqual(db.state, ResolverState.UNRESOLVED)
        self.assertEqual(db.probes, [])
        self.assertIsNone(db.protocols_db)

    def test_file_backend(self):
        db = NetDB(self.config(backends=["file", "builtin"]))
        self.assertEqual(db.get_protocol_by_name("tcp").number, 6)
        self.assertEqual(db.state, ResolverState.BOUND)
        self.assertEqual(db.protocols_db.kind, BackendKind.FILE)
        self.assertEqual(db.services_db.kind, BackendKind.FILE)
        self.assertEqual(
            self.reasons(db, "protocols"),
            [(BackendKind.NATIVE, UnavailableReason.DISABLED), (BackendKind.FILE, None)],
        )

    @patch.object(NativeServicesDB, "load", side_effect=native_unavailable)
    @patch.object(NativeProtocolsDB, "load", side_effect=native_unavailable)
    def test_native_fallback(self, *mocks):
        db = NetDB(self.config()).resolve()
        self.assertEqual(db.protocols_db.kind, BackendKind.FILE)
        self.assertEqual(
            self.reasons(db, "services"),
            [(BackendKind.NATIVE, UnavailableReason.UNSUPPORTED_PLATFORM), (BackendKind.FILE, None)],
        )

    def test_builtin_fallback(self):
        missing = join(self.tmpdir.name, "missing")
        db = NetDB(self.config(protocols_file=missing, services_file=missing, backends=["file"])).resolve()
        self.assertEqual(db.protocols_db.kind, BackendKind.BUILTIN)
        self.assertEqual(db.services_db.kind, BackendKind.BUILTIN)
        self.assertEqual(
            self.reasons(db, "protocols"),
            [
                (BackendKind.NATIVE, UnavailableReason.DISABLED),
                (BackendKind.FILE, UnavailableReason.FILE_NOT_FOUND),
                (BackendKind.BUILTIN, None),
            ],
        )
        self.assertEqual(db.get_service_by_name("comsat", "udp").port, 512)

    def test_independent_bindings(self):
        empty = self.write_file("empty", "# nothing here\n")
        db = NetDB(self.config(services_file=empty, backends=["file"])).resolve()
        self.assertEqual(db.protocols_db.kind, BackendKind.FILE)
        self.assertEqual(db.services_db.kind, BackendKind.BUILTIN)
        self.assertIn((BackendKind.FILE, UnavailableReason.NO_ENTRIES), self.reasons(db, "services"))

    def test_no_reprobing(self):
        db = NetDB(self.config(backends=["file"])).resolve()
        probes = list(db.probes)
        remove(self.services_file)
        self.assertIsNone(db.get_service_by_name("ftp", "tcp"))
        self.assertEqual(db.services_db.kind, BackendKind.FILE)
        self.assertEqual(db.resolve().probes, probes)

    def test_unreadable_file_after_binding(self):
        db = NetDB(self.config(backends=["file"])).resolve()
        remove(self.protocols_file)
        mkdir(self.protocols_file)
        self.assertIsNone(db.get_protocol_by_name("tcp"))
        self.assertEqual(db.protocols_db.kind, BackendKind.FILE)

    def test_concurrent_first_use(self):
        db = NetDB(self.config(backends=["file"]))
        barrier = Barrier(8)
        results = []

        def lookup():
            barrier.wait()
            results.append(db.get_protocol_by_name("udp"))

        threads = [Thread(target=lookup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 8)
        self.assertTrue(all(result.number == 17 for result in results))
        self.assertEqual(len(self.reasons(db, "protocols")), 2)
        self.assertEqual(len(self.reasons(db, "services")), 2)

    def test_config_file(self):
        config_file = self.write_file("netdb.toml", 'backends = ["builtin"]\n')
        db = NetDB(config_file=config_file).resolve()
        self.assertEqual(db.protocols_db.kind, BackendKind.BUILTIN)
        self.assertEqual(
            self.reasons(db, "services"),
            [
                (BackendKind.NATIVE, UnavailableReason.DISABLED),
                (BackendKind.FILE, UnavailableReason.DISABLED),
                (BackendKind.BUILTIN, None),
            ],
        )


class TestLookups(NetDBTestCase):
    """Checks which hold for whichever backend the host binds."""

    def setUp(self):
        super().setUp()
        self.db = NetDB()

    def test_tcp(self):
        for _ in range(3):
            protocol = self.db.get_protocol_by_name("tcp")
            self.assertEqual(protocol.name, "tcp")
            self.assertEqual(protocol.number, 6)

    def test_symmetry(self):
        number = self.db.get_protocol_by_name("udp").number
        self.assertEqual(self.db.get_protocol_by_number(number).name, "udp")

    def test_not_found(self):
        self.assertIsNone(self.db.get_protocol_by_name("foo-bar-baz"))
        self.assertIsNone(self.db.get_protocol_by_number(-1))
        self.assertIsNone(self.db.get_service_by_name("foo-bar-baz", "tcp"))

    def test_enumeration(self):
        self.assertTrue(any("tcp" in p.names for p in self.db.get_all_protocols()))
        self.assertTrue(any("ftp" in s.names for s in self.db.get_all_services()))


class TestDefaultNetDB(TestCase):
    def test_default_is_shared(self):
        self.assertIs(netdb.default_netdb(), netdb.default_netdb())

    def test_module_functions(self):
        self.assertEqual(netdb.get_protocol_by_name("tcp").number, 6)
        self.assertEqual(netdb.get_protocol_by_number(6).name, "tcp")
        self.assertIsNone(netdb.get_protocol_by_name("foo-bar-baz"))
        self.assertEqual(netdb.default_netdb().state, ResolverState.BOUND)


if __name__ == "__main__":
    main()
