from unittest import TestCase, main

from netdb import BackendKind, NetDBConfig
from netdb.iana_db import IANADB, IANAProtocolsDB, IANAServicesDB


class TestIANAProtocolsDB(TestCase):
    def setUp(self):
        self.db = IANAProtocolsDB.load(NetDBConfig())

    def test_kind(self):
        self.assertEqual(self.db.kind, BackendKind.BUILTIN)

    def test_by_name(self):
        protocol = self.db.get_protocol_by_name("tcp")
        self.assertEqual(protocol.name, "tcp")
        self.assertEqual(protocol.number, 6)

    def test_by_alias(self):
        self.assertEqual(self.db.get_protocol_by_name("IP").number, self.db.get_protocol_by_name("ip").number)
        self.assertEqual(self.db.get_protocol_by_name("OSPFIGP").name, "ospf")

    def test_by_number(self):
        self.assertEqual(self.db.get_protocol_by_number(0).name, "ip")
        self.assertEqual(self.db.get_protocol_by_number(17).name, "udp")

    def test_not_found(self):
        self.assertIsNone(self.db.get_protocol_by_name("foo-bar-baz"))
        self.assertIsNone(self.db.get_protocol_by_number(-1))

    def test_name_number_symmetry(self):
        for protocol in self.db.get_all_protocols():
            self.assertEqual(self.db.get_protocol_by_number(protocol.number).name, protocol.name)

    def test_all_protocols_unique(self):
        protocols = self.db.get_all_protocols()
        self.assertEqual(len(protocols), len(set(protocols)))
        self.assertTrue(any("tcp" in p.names for p in protocols))

    def test_tables_built_once(self):
        self.assertIs(IANAProtocolsDB().tables, self.db.tables)

    def test_base_is_abstract(self):
        with self.assertRaises(TypeError):
            IANADB("protocols")


class TestIANAServicesDB(TestCase):
    def setUp(self):
        self.db = IANAServicesDB.load(NetDBConfig())

    def test_by_name(self):
        service = self.db.get_service_by_name("bootps", "udp")
        self.assertEqual(service.port, 67)
        self.assertEqual(service.protocol, "udp")

    def test_by_port(self):
        self.assertEqual(self.db.get_service_by_port(67, "udp").name, "bootps")

    def test_comsat(self):
        by_name = self.db.get_service_by_name("comsat", "udp")
        by_port = self.db.get_service_by_port(512, "udp")
        for service in [by_name, by_port]:
            self.assertIn(service.name, ["comsat", "biff"])
            self.assertEqual(service.port, 512)
        # Later entries win
        self.assertEqual(by_port.name, "biff")

    def test_any_protocol_prefers_tcp(self):
        self.assertEqual(self.db.get_service_by_name("ftp").protocol, "tcp")
        self.assertEqual(self.db.get_service_by_port(67).protocol, "tcp")
        self.assertEqual(self.db.get_service_by_name("comsat").protocol, "udp")

    def test_other_transports(self):
        self.assertEqual(self.db.get_service_by_name("ssh", "sctp").port, 22)
        self.assertIsNone(self.db.get_service_by_name("ssh", "ddp"))
        self.assertIsNone(self.db.get_service_by_port(22, "ddp"))

    def test_not_found(self):
        self.assertIsNone(self.db.get_service_by_name("foo-bar-baz"))
        self.assertIsNone(self.db.get_service_by_port(-1))

    def test_all_services(self):
        services = self.db.get_all_services()
        self.assertEqual(len(services), len(set(services)))
        self.assertEqual(services[0].protocol, "tcp")
        self.assertTrue(any("ftp" in s.names for s in services))
        self.assertIn(self.db.get_service_by_name("comsat", "udp"), services)
        self.assertIn(self.db.get_service_by_port(512, "udp"), services)

    def test_tables_built_once(self):
        self.assertIs(IANAServicesDB().tables, self.db.tables)


if __name__ == "__main__":
    main()
