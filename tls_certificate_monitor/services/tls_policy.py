"""
TLS协议版本、密码套件合规与证书链状态分类
"""
from typing import Optional

from cryptography.x509.oid import SignatureAlgorithmOID


CHAIN_OK = "OK"
CHAIN_UNTRUSTED = "Untrusted Root / Missing Intermediate"
HOSTNAME_MISMATCH = "Hostname Mismatch"

# OpenSSL协议名称 -> 展示标签
_PROTOCOL_LABELS = {
    'SSLv3': 'SSL 3.0',
    'TLSv1': 'TLS 1.0',
    'TLSv1.1': 'TLS 1.1',
    'TLSv1.2': 'TLS 1.2',
    'TLSv1.3': 'TLS 1.3',
}

_TLS13_SUITES = (
    'TLS_AES_128_GCM_SHA256',
    'TLS_AES_256_GCM_SHA384',
)

_TLS12_SUITES = (
    # RSA密钥交换
    'AES128-SHA',
    'AES256-SHA',
    'AES128-GCM-SHA256',
    'AES256-GCM-SHA384',
    # ECDHE-ECDSA
    'ECDHE-ECDSA-AES128-SHA',
    'ECDHE-ECDSA-AES256-SHA',
    'ECDHE-ECDSA-AES128-GCM-SHA256',
    'ECDHE-ECDSA-AES256-GCM-SHA384',
    # ECDHE-RSA
    'ECDHE-RSA-AES128-SHA',
    'ECDHE-RSA-AES256-SHA',
    'ECDHE-RSA-AES128-GCM-SHA256',
    'ECDHE-RSA-AES256-GCM-SHA384',
)

# 合规集合：(协议版本, 密码套件) 组合，不在集合中的一律视为不合规
APPROVED_CIPHER_SUITES = frozenset(
    [('TLS 1.3', suite) for suite in _TLS13_SUITES] +
    [('TLS 1.2', suite) for suite in _TLS12_SUITES]
)

_SIGNATURE_ALGORITHMS = {
    SignatureAlgorithmOID.RSA_WITH_MD5: 'MD5-RSA',
    SignatureAlgorithmOID.RSA_WITH_SHA1: 'SHA1-RSA',
    SignatureAlgorithmOID.RSA_WITH_SHA256: 'SHA256-RSA',
    SignatureAlgorithmOID.RSA_WITH_SHA384: 'SHA384-RSA',
    SignatureAlgorithmOID.RSA_WITH_SHA512: 'SHA512-RSA',
    SignatureAlgorithmOID.RSASSA_PSS: 'RSA-PSS',
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: 'ECDSA-SHA1',
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: 'ECDSA-SHA256',
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: 'ECDSA-SHA384',
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: 'ECDSA-SHA512',
    SignatureAlgorithmOID.DSA_WITH_SHA1: 'DSA-SHA1',
    SignatureAlgorithmOID.DSA_WITH_SHA256: 'DSA-SHA256',
    SignatureAlgorithmOID.ED25519: 'Ed25519',
}


def classify_protocol_version(raw: Optional[str]) -> str:
    """
    将协商的协议版本转换为固定标签

    Args:
        raw: OpenSSL返回的协议名称，如 "TLSv1.2"

    Returns:
        str: "SSL 3.0"、"TLS 1.0" ~ "TLS 1.3" 或 "Unknown(<raw>)"
    """
    return _PROTOCOL_LABELS.get(raw or '', f"Unknown({raw})")


def is_compliant(tls_version: str, cipher_suite: str) -> bool:
    """判断协议版本与密码套件组合是否在合规集合中"""
    return (tls_version, cipher_suite) in APPROVED_CIPHER_SUITES


def signature_algorithm_name(oid) -> str:
    """证书签名算法名称，未知算法返回OID点分形式"""
    return _SIGNATURE_ALGORITHMS.get(oid, oid.dotted_string)


def classify_chain_error(error: Exception) -> str:
    """
    将证书链验证失败分类为状态标签

    "Untrusted Root" 与 "Missing Intermediate" 无法区分，归为同一类。

    Args:
        error: 验证异常

    Returns:
        str: 链状态标签
    """
    detail = str(error)
    lowered = detail.lower()

    if 'subjectaltname' in lowered or 'san extension' in lowered or 'hostname' in lowered:
        return f"{HOSTNAME_MISMATCH}: {detail}"
    if ('not valid at validation time' in lowered or 'expired' in lowered
            or 'not yet valid' in lowered or 'basicconstraints' in lowered
            or 'keyusage' in lowered):
        return f"Invalid Cert: {detail}"
    if 'candidates exhausted' in lowered or 'unknown issuer' in lowered:
        return CHAIN_UNTRUSTED
    return f"Chain Error: {detail}"
