"""
受信任根证书存储
"""
import logging
from functools import lru_cache
from typing import Iterable, Optional

import certifi
from cryptography import x509
from cryptography.x509.verification import Store

from .error_handler import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def load_trust_store(ca_bundle: Optional[str] = None) -> Store:
    """
    从PEM文件加载受信任根证书

    Args:
        ca_bundle: CA证书包路径，None时使用certifi自带的证书包

    Returns:
        Store: 根证书存储

    Raises:
        ConfigurationError: 文件无法读取或不包含证书
    """
    path = ca_bundle or certifi.where()

    try:
        with open(path, 'rb') as f:
            roots = x509.load_pem_x509_certificates(f.read())
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"无法加载CA证书包 {path}: {e}") from e

    if not roots:
        raise ConfigurationError(f"CA证书包 {path} 中没有证书")

    logger.debug(f"从 {path} 加载了 {len(roots)} 个根证书")
    return Store(roots)


def trust_store_from_certificates(roots: Iterable[x509.Certificate]) -> Store:
    """由证书对象直接构造根证书存储"""
    roots = list(roots)
    if not roots:
        raise ConfigurationError("根证书列表为空")
    return Store(roots)
