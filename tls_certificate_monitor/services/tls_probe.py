"""
TLS探测服务
"""
import errno
import ipaddress
import logging
import os
import select
import socket
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import List, Optional

from OpenSSL import SSL
from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.x509.verification import PolicyBuilder, Store, VerificationError

from ..models import CertificateFacts
from .deadline import Deadline
from .error_handler import HandshakeError, NoCertificateError, TargetConnectionError
from .tls_policy import (
    CHAIN_OK,
    HOSTNAME_MISMATCH,
    classify_chain_error,
    classify_protocol_version,
    is_compliant,
    signature_algorithm_name,
)
from .trust_store import load_trust_store

# 握手等待期间检查取消状态的间隔（秒）
_POLL_INTERVAL = 0.25

# 域名解析在线程中执行，等待时受截止时间约束
_RESOLVER = ThreadPoolExecutor(thread_name_prefix="tls-resolve")

_CONNECT_IN_PROGRESS = (0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY)


def is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class TLSProbe:
    """TLS探测器：对单个 (主机, 端口) 执行一次有截止时间的TLS连接"""

    def __init__(self, trust_store: Optional[Store] = None, ca_bundle: Optional[str] = None):
        """
        初始化TLS探测器

        Args:
            trust_store: 用于证书链验证的根证书存储
            ca_bundle: CA证书包路径，trust_store为None时使用
        """
        self._trust_store = trust_store
        self.ca_bundle = ca_bundle
        self.logger = logging.getLogger(__name__)

    @property
    def trust_store(self) -> Store:
        if self._trust_store is None:
            self._trust_store = load_trust_store(self.ca_bundle)
        return self._trust_store

    def preload(self) -> Store:
        """
        提前加载根证书存储

        Raises:
            ConfigurationError: CA证书包无法加载
        """
        return self.trust_store

    def probe(self, deadline: Deadline, host: str, port: int,
              at: Optional[datetime] = None) -> CertificateFacts:
        """
        探测目标并提取证书信息

        证书链验证失败不会抛出异常，只体现在chain_status中。

        Args:
            deadline: 本次探测的截止时间令牌
            host: 主机名或IP地址
            port: TCP端口
            at: 证书链验证使用的时间，默认为当前时间

        Returns:
            CertificateFacts: 证书与会话信息

        Raises:
            TargetConnectionError: TCP连接失败
            HandshakeError: TLS握手失败或超时
            NoCertificateError: 对端未提供证书
        """
        sock = _connect(deadline, host, port)

        with sock:
            conn = self._handshake(deadline, sock, host)

            tls_version = classify_protocol_version(conn.get_protocol_version_name())
            cipher_suite = conn.get_cipher_name() or ""
            chain = conn.get_peer_cert_chain() or []

            if not chain:
                raise NoCertificateError("no certificates found")

            certificates = [cert.to_cryptography() for cert in chain]

        self.logger.debug(f"{host}:{port} 握手完成: {tls_version} {cipher_suite}, 证书链长度 {len(certificates)}")

        leaf, intermediates = certificates[0], certificates[1:]
        return CertificateFacts(
            tls_version=tls_version,
            cipher_suite=cipher_suite,
            compliant=is_compliant(tls_version, cipher_suite),
            not_before=leaf.not_valid_before_utc,
            not_after=leaf.not_valid_after_utc,
            common_name=_name_attribute(leaf.subject, NameOID.COMMON_NAME),
            serial=format(leaf.serial_number, 'x'),
            issuer=_issuer_name(leaf),
            signature_algorithm=signature_algorithm_name(leaf.signature_algorithm_oid),
            sans=_dns_names(leaf),
            chain_status=self.verify_chain(leaf, intermediates, host, at),
        )

    def verify_chain(self, leaf: x509.Certificate, intermediates: List[x509.Certificate],
                     host: str, at: Optional[datetime] = None) -> str:
        """
        验证证书链并分类结果

        Args:
            leaf: 叶子证书
            intermediates: 服务器提供的中间证书
            host: 需要匹配的主机名
            at: 验证时间

        Returns:
            str: 链状态标签
        """
        at = (at or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(tzinfo=None)

        try:
            self._verify(leaf, intermediates, _verification_subject(host), at)
        except VerificationError as e:
            status = classify_chain_error(e)
        except ValueError as e:
            return f"Chain Error: {e}"
        else:
            return CHAIN_OK

        if status.startswith(HOSTNAME_MISMATCH):
            # 主机名在建链之前检查，链本身不可信或证书无效时以后者为准
            chain_status = self._verify_without_hostname(leaf, intermediates, at)
            if chain_status is not None and chain_status != CHAIN_OK:
                return chain_status

        return status

    def _verify(self, leaf: x509.Certificate, intermediates: List[x509.Certificate],
                subject: x509.GeneralName, at: datetime) -> None:
        verifier = PolicyBuilder().store(self.trust_store).time(at).build_server_verifier(subject)
        verifier.verify(leaf, intermediates)

    def _verify_without_hostname(self, leaf: x509.Certificate, intermediates: List[x509.Certificate],
                                 at: datetime) -> Optional[str]:
        """
        以叶子证书自身的名称重新验证，只检查有效期与信任链

        Returns:
            Optional[str]: 链状态标签，叶子证书没有可用名称时为None
        """
        subject = _leaf_subject(leaf)
        if subject is None:
            return None

        try:
            self._verify(leaf, intermediates, subject, at)
        except VerificationError as e:
            return classify_chain_error(e)
        except ValueError:
            return None

        return CHAIN_OK

    def _handshake(self, deadline: Deadline, sock: socket.socket, host: str) -> SSL.Connection:
        """在非阻塞套接字上执行TLS客户端握手，服务器证书由verify_chain单独验证"""
        context = SSL.Context(SSL.TLS_CLIENT_METHOD)
        context.set_verify(SSL.VERIFY_NONE)

        conn = SSL.Connection(context, sock)
        if not is_ip_literal(host):
            conn.set_tlsext_host_name(host.encode('idna'))
        conn.set_connect_state()
        sock.setblocking(False)

        while True:
            try:
                conn.do_handshake()
                return conn
            except SSL.WantReadError:
                _wait_for_socket(deadline, sock, readable=True)
            except SSL.WantWriteError:
                _wait_for_socket(deadline, sock, readable=False)
            except SSL.Error as e:
                raise HandshakeError(f"handshake failed: {_describe_ssl_error(e)}") from e
            except OSError as e:
                raise HandshakeError(f"handshake failed: {e}") from e


def _connect(deadline: Deadline, host: str, port: int) -> socket.socket:
    """
    解析目标地址并依次尝试连接，解析与每次连接共享同一个截止时间

    Returns:
        socket.socket: 已连接的非阻塞套接字

    Raises:
        TargetConnectionError: 解析失败、全部地址连接失败或截止时间到期
    """
    last_error = None

    for family, sock_type, proto, _, address in _resolve(deadline, host, port):
        _check_deadline(deadline, TargetConnectionError, "failed to connect")

        sock = socket.socket(family, sock_type, proto)
        try:
            _connect_socket(deadline, sock, address)
        except OSError as e:
            sock.close()
            last_error = e
            continue
        except TargetConnectionError:
            sock.close()
            raise

        return sock

    if last_error is None:
        raise TargetConnectionError(f"failed to connect: no addresses found for {host}")
    raise TargetConnectionError(f"failed to connect: {last_error}") from last_error


def _resolve(deadline: Deadline, host: str, port: int) -> list:
    future = _RESOLVER.submit(socket.getaddrinfo, host, port, 0, socket.SOCK_STREAM)

    while True:
        try:
            interval = _check_deadline(deadline, TargetConnectionError, "failed to connect")
        except TargetConnectionError:
            future.cancel()
            raise

        try:
            return future.result(timeout=interval)
        except FutureTimeoutError as e:
            if not future.done():
                continue
            raise TargetConnectionError(f"failed to connect: {e}") from e
        except OSError as e:
            raise TargetConnectionError(f"failed to connect: {e}") from e


def _connect_socket(deadline: Deadline, sock: socket.socket, address) -> None:
    sock.setblocking(False)

    result = sock.connect_ex(address)
    if result not in _CONNECT_IN_PROGRESS:
        raise OSError(result, os.strerror(result))

    if result != 0:
        _wait_for_socket(deadline, sock, readable=False,
                         error_class=TargetConnectionError, action="failed to connect")
        result = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if result != 0:
            raise OSError(result, os.strerror(result))


def _check_deadline(deadline: Deadline, error_class, action: str) -> float:
    """截止时间到期时抛出error_class，否则返回下一次等待的间隔"""
    remaining = deadline.remaining()
    if remaining is not None and remaining <= 0:
        raise error_class(f"{action}: {deadline.reason()}")
    return _POLL_INTERVAL if remaining is None else min(remaining, _POLL_INTERVAL)


def _wait_for_socket(deadline: Deadline, sock: socket.socket, readable: bool,
                     error_class=HandshakeError, action: str = "handshake failed") -> None:
    while True:
        interval = _check_deadline(deadline, error_class, action)
        if readable:
            ready = select.select([sock], [], [], interval)[0]
        else:
            ready = select.select([], [sock], [], interval)[1]
        if ready:
            return


def _describe_ssl_error(error: SSL.Error) -> str:
    if isinstance(error, SSL.SysCallError):
        return str(error.args[1]) if len(error.args) > 1 else "connection closed by peer"
    if error.args and isinstance(error.args[0], list):
        reasons = [entry[-1] for entry in error.args[0] if entry and entry[-1]]
        if reasons:
            return "; ".join(reasons)
    return str(error) or type(error).__name__


def _name_attribute(name: x509.Name, oid) -> str:
    attributes = name.get_attributes_for_oid(oid)
    return str(attributes[0].value) if attributes else ""


def _issuer_name(cert: x509.Certificate) -> str:
    # 颁发者通用名称 -> 组织名称 -> "Unknown"
    return (_name_attribute(cert.issuer, NameOID.COMMON_NAME)
            or _name_attribute(cert.issuer, NameOID.ORGANIZATION_NAME)
            or "Unknown")


def _dns_names(cert: x509.Certificate) -> tuple:
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except (x509.ExtensionNotFound, ValueError):
        return ()
    return tuple(san.value.get_values_for_type(x509.DNSName))


def _verification_subject(host: str) -> x509.GeneralName:
    if is_ip_literal(host):
        return x509.IPAddress(ipaddress.ip_address(host))
    return x509.DNSName(host)


def _leaf_subject(cert: x509.Certificate) -> Optional[x509.GeneralName]:
    """取叶子证书SAN中的第一个名称，通配符标签替换为具体标签"""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except (x509.ExtensionNotFound, ValueError):
        return None

    for name in san.get_values_for_type(x509.DNSName):
        if name.startswith('*.'):
            name = 'wildcard' + name[1:]
        return x509.DNSName(name)

    for address in san.get_values_for_type(x509.IPAddress):
        return x509.IPAddress(address)

    return None
