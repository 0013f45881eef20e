"""
错误定义与错误处理服务
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List


class ProbeError(Exception):
    """单个目标探测失败的基类，对该目标是终止性的，不做重试"""


class TargetConnectionError(ProbeError):
    """TCP连接失败"""


class HandshakeError(ProbeError):
    """TLS握手失败（包括截止时间到期）"""


class NoCertificateError(ProbeError):
    """对端未提供任何证书"""


class ConfigurationError(Exception):
    """配置无效"""


class DiscoveryError(Exception):
    """目标发现失败"""


class ProbeErrorHandler:
    """探测错误处理器"""

    def __init__(self):
        """初始化探测错误处理器"""
        self.logger = logging.getLogger(__name__)
        self.handled_errors: List[Dict[str, Any]] = []

    def handle_probe_error(self, host: str, port: int, error: Exception) -> Dict[str, Any]:
        """
        处理探测错误

        Args:
            host: 主机名
            port: 端口
            error: 异常对象

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'domain': host,
            'port': port,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(error)
        }

        self.logger.warning(f"{host}:{port} 探测失败: {error_info['error_message']}")

        self.handled_errors.append(error_info)
        return error_info

    def _get_suggested_action(self, error: Exception) -> str:
        """
        获取错误的建议处理方案

        Args:
            error: 异常对象

        Returns:
            str: 建议的处理方案
        """
        error_message = str(error).lower()

        if isinstance(error, TargetConnectionError):
            if 'deadline' in error_message or 'timed out' in error_message:
                return "检查网络连接，考虑增加超时时间"
            if 'name or service not known' in error_message or 'nodename' in error_message:
                return "检查域名是否正确，DNS服务器是否可用"
            if 'refused' in error_message:
                return "检查目标服务器是否运行，端口是否正确"
            return "检查网络连接和防火墙配置"
        elif isinstance(error, HandshakeError):
            if 'deadline' in error_message:
                return "TLS握手超时，考虑增加超时时间"
            return "TLS握手失败，检查端口是否提供TLS服务以及TLS版本兼容性"
        elif isinstance(error, NoCertificateError):
            return "服务器未提供证书，检查服务器TLS配置"
        else:
            return "检查网络连接和服务器状态"

    def get_error_statistics(self, error_list: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        获取错误统计信息

        Args:
            error_list: 错误信息列表

        Returns:
            Dict[str, Any]: 错误统计
        """
        if not error_list:
            return {
                'total_errors': 0,
                'error_types': {},
                'most_common_error': None,
                'most_common_error_count': 0
            }

        error_types = {}
        for error_info in error_list:
            error_type = error_info.get('error_type', 'Unknown')
            error_types[error_type] = error_types.get(error_type, 0) + 1

        most_common_error = max(error_types.items(), key=lambda x: x[1])

        return {
            'total_errors': len(error_list),
            'error_types': error_types,
            'most_common_error': most_common_error[0],
            'most_common_error_count': most_common_error[1]
        }
