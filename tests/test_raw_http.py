import json
import socket
import unittest
from datetime import datetime, timezone
from unittest import mock

from domain.exceptions import MalformedResponseError, TransportError
from domain.models import ClaimRequest, RequestShape
from infrastructure.net.raw_http import (
    TlsConnection,
    TlsConnectionFactory,
    build_claim_payload,
    parse_status_code,
)

TARGET = datetime(2026, 3, 1, 18, 0, 0, tzinfo=timezone.utc)


def _split(payload: bytes):
    head, _, body = payload.partition(b"\r\n\r\n")
    lines = head.decode().split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


class BuildClaimPayloadTests(unittest.TestCase):
    def test_rename_shape(self):
        request = ClaimRequest(username="Notch", target=TARGET, shape=RequestShape.RENAME)
        payload = build_claim_payload(request, "token-abc", "api.example.com")

        request_line, headers, body = _split(payload)
        self.assertEqual(request_line, "PUT /minecraft/profile/name/Notch HTTP/1.1")
        self.assertEqual(headers["Host"], "api.example.com")
        self.assertEqual(headers["Authorization"], "Bearer token-abc")
        self.assertEqual(headers["Accept"], "application/json")
        self.assertNotIn("Content-Length", headers)
        self.assertEqual(body, b"")
        self.assertTrue(payload.endswith(b"\r\n\r\n"))

    def test_rename_without_accept_omits_header(self):
        request = ClaimRequest(
            username="Notch", target=TARGET, shape=RequestShape.RENAME_WITHOUT_ACCEPT
        )
        request_line, headers, _ = _split(build_claim_payload(request, "token-abc"))

        self.assertEqual(request_line, "PUT /minecraft/profile/name/Notch HTTP/1.1")
        self.assertNotIn("Accept", headers)
        self.assertEqual(headers["Host"], "api.minecraftservices.com")

    def test_create_profile_counts_trailing_terminator_in_body(self):
        request = ClaimRequest(
            username="Notch", target=TARGET, shape=RequestShape.CREATE_PROFILE
        )
        payload = build_claim_payload(request, "token-abc")

        request_line, headers, body = _split(payload)
        self.assertEqual(request_line, "POST /minecraft/profile HTTP/1.1")
        self.assertEqual(headers["Content-Type"], "application/json")
        self.assertEqual(int(headers["Content-Length"]), len(body))
        self.assertTrue(body.endswith(b"\r\n"))
        self.assertEqual(json.loads(body), {"profileName": "Notch"})


class ParseStatusCodeTests(unittest.TestCase):
    def test_ok_status(self):
        self.assertEqual(parse_status_code(b"HTTP/1.1 200 OK..."), 200)

    def test_forbidden_status(self):
        self.assertEqual(parse_status_code(b"HTTP/1.1 403 For"), 403)

    def test_http2_style_version(self):
        self.assertEqual(parse_status_code(b"HTTP/2.0 429 Too"), 429)

    def test_non_digit_code(self):
        with self.assertRaises(MalformedResponseError) as ctx:
            parse_status_code(b"HTTP/1.1 20X OK")
        self.assertEqual(ctx.exception.raw, b"HTTP/1.1 20X OK")

    def test_truncated_prefix(self):
        for prefix in (b"", b"HTTP/1.1 2", b"HTTP/1.1 20"):
            with self.subTest(prefix=prefix):
                with self.assertRaises(MalformedResponseError):
                    parse_status_code(prefix)

    def test_not_a_status_line(self):
        with self.assertRaises(MalformedResponseError):
            parse_status_code(b"<html>200 hello")


class TlsConnectionTests(unittest.TestCase):
    def test_read_stops_at_size_or_eof(self):
        sock = mock.Mock()
        sock.recv.side_effect = [b"HTTP/1.1 ", b"204", b""]
        self.assertEqual(TlsConnection(sock).read(12), b"HTTP/1.1 204")

        sock = mock.Mock()
        sock.recv.side_effect = [b"HTTP/1", b""]
        self.assertEqual(TlsConnection(sock).read(12), b"HTTP/1")

    def test_socket_errors_become_transport_errors(self):
        sock = mock.Mock()
        sock.sendall.side_effect = ConnectionResetError("reset")
        sock.recv.side_effect = ConnectionResetError("reset")
        connection = TlsConnection(sock)

        with self.assertRaises(TransportError):
            connection.write(b"PUT")
        with self.assertRaises(TransportError):
            connection.read(12)

    def test_write_uses_sendall(self):
        sock = mock.Mock()
        TlsConnection(sock).write(b"PUT / HTTP/1.1\r\n")
        sock.sendall.assert_called_once_with(b"PUT / HTTP/1.1\r\n")


class TlsConnectionFactoryTests(unittest.TestCase):
    def test_open_disables_nagle_and_wraps_with_sni(self):
        raw = mock.Mock()
        context = mock.Mock()
        factory = TlsConnectionFactory(context=context, timeout=3.0)

        with mock.patch("socket.create_connection", return_value=raw) as create:
            connection = factory.open("api.example.com", 443)

        create.assert_called_once_with(("api.example.com", 443), timeout=3.0)
        raw.setsockopt.assert_called_once_with(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        context.wrap_socket.assert_called_once_with(raw, server_hostname="api.example.com")
        self.assertIsInstance(connection, TlsConnection)

    def test_dns_failure_is_transport_error(self):
        factory = TlsConnectionFactory(context=mock.Mock())
        with mock.patch("socket.create_connection", side_effect=socket.gaierror("no such host")):
            with self.assertRaises(TransportError):
                factory.open("nowhere.invalid", 443)

    def test_handshake_failure_closes_socket(self):
        raw = mock.Mock()
        context = mock.Mock()
        context.wrap_socket.side_effect = OSError("handshake failed")
        factory = TlsConnectionFactory(context=context)

        with mock.patch("socket.create_connection", return_value=raw):
            with self.assertRaises(TransportError):
                factory.open("api.example.com", 443)
        raw.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
