"""
测试公共夹具：临时PKI与本地TLS服务器
"""
import ipaddress
import socket
import ssl
import threading
from datetime import datetime, timezone, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID


def _key_usage(ca: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=not ca,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=ca,
        crl_sign=ca,
        encipher_only=False,
        decipher_only=False,
    )


def issue_certificate(common_name, issuer_cert=None, issuer_key=None, ca=False,
                      not_before=None, not_after=None, dns_names=('localhost',),
                      ip_addresses=('127.0.0.1',)):
    """签发测试证书，issuer为None时生成自签名根证书"""
    now = datetime.now(timezone.utc)
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_cert.subject if issuer_cert else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=30))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(_key_usage(ca), critical=True)
    )

    if ca:
        path_length = None if issuer_cert is None else 0
        builder = builder.add_extension(x509.BasicConstraints(ca=True, path_length=path_length), critical=True)
    else:
        sans = [x509.DNSName(name) for name in dns_names]
        sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
        builder = (
            builder
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(x509.SubjectAlternativeName(sans), critical=False)
        )

    if issuer_cert is not None:
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()), critical=False
        )

    cert = builder.sign(issuer_key or key, hashes.SHA256())
    return cert, key


def _pem(cert):
    return cert.public_bytes(serialization.Encoding.PEM)


class TestPKI:
    """根证书 -> 中间证书 -> 叶子证书"""

    __test__ = False

    def __init__(self, directory):
        self.directory = directory
        self.root, self.root_key = issue_certificate("Test Root CA", ca=True)
        self.intermediate, self.intermediate_key = issue_certificate(
            "Test Intermediate CA", self.root, self.root_key, ca=True
        )
        self.leaf, self.leaf_key = issue_certificate("localhost", self.intermediate, self.intermediate_key)

        self.key_path = self._write("leaf.key", self.leaf_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ))
        self.leaf_path = self._write("leaf.pem", _pem(self.leaf))
        self.chain_path = self._write("chain.pem", _pem(self.leaf) + _pem(self.intermediate))
        self.root_path = self._write("root.pem", _pem(self.root))

    def _write(self, name, data):
        path = self.directory / name
        path.write_bytes(data)
        return str(path)


class LocalTLSServer:
    """后台线程中运行的TLS服务器，逐个处理连接"""

    def __init__(self, certfile, keyfile, minimum_version=None, maximum_version=None, ciphers=None):
        self.context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.context.load_cert_chain(certfile, keyfile)
        if minimum_version is not None:
            self.context.minimum_version = minimum_version
        if maximum_version is not None:
            self.context.maximum_version = maximum_version
        if ciphers is not None:
            self.context.set_ciphers(ciphers)

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(5)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]

        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stopped.set()
        self._thread.join(timeout=5)
        self.sock.close()

    def _serve(self):
        while not self._stopped.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self.handle(conn)

    def handle(self, conn):
        conn.settimeout(2)
        try:
            with self.context.wrap_socket(conn, server_side=True) as tls_conn:
                while tls_conn.recv(1024):
                    pass
        except (ssl.SSLError, OSError):
            conn.close()


class PlainTextServer(LocalTLSServer):
    """不使用TLS的服务器，连接后直接返回明文"""

    def __init__(self, response=b"HTTP/1.1 400 Bad Request\r\n\r\n", silent=False):
        self.response = response
        self.silent = silent

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(5)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]

        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def handle(self, conn):
        with conn:
            if self.silent:
                # 不回应任何数据，直到客户端放弃
                self._stopped.wait(3)
                return
            try:
                conn.sendall(self.response)
            except OSError:
                pass


@pytest.fixture(scope="session")
def pki(tmp_path_factory):
    return TestPKI(tmp_path_factory.mktemp("pki"))


@pytest.fixture
def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


@pytest.fixture
def saturated_port():
    """监听队列已满的端口，新的连接请求得不到响应"""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(('127.0.0.1', 0))
    listener.listen(0)
    address = listener.getsockname()

    fillers = []
    for _ in range(8):
        filler = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        filler.setblocking(False)
        filler.connect_ex(address)
        fillers.append(filler)

    yield address[1]

    for filler in fillers:
        filler.close()
    listener.close()
