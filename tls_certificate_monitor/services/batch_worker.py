"""
批处理工作器
"""
import logging
import queue
from datetime import datetime
from typing import Optional, Sequence

from ..models import ProbeTarget, ScanResult
from .deadline import Deadline
from .error_handler import ProbeError, ProbeErrorHandler
from .expiry_calculator import days_until_expiry
from .tls_probe import TLSProbe

logger = logging.getLogger(__name__)


def process_batch(parent: Deadline, hosts: Sequence[str], ports: Sequence[int], timeout: float,
                  now: datetime, sink: "queue.Queue[ScanResult]", prober: TLSProbe,
                  error_handler: Optional[ProbeErrorHandler] = None) -> int:
    """
    依次探测一批主机的全部端口，每个 (主机, 端口) 向sink写入一条结果

    Args:
        parent: 父截止时间令牌，每次探测派生独立的子令牌
        hosts: 本批次的主机列表
        ports: 端口列表
        timeout: 单次探测超时时间（秒）
        now: 计算过期天数的参考时间
        sink: 共享的结果队列
        prober: TLS探测器
        error_handler: 探测错误处理器

    Returns:
        int: 写入的结果数量
    """
    error_handler = error_handler or ProbeErrorHandler()
    emitted = 0

    for host in hosts:
        for port in ports:
            target = ProbeTarget(host, port)
            logger.debug(f"扫描目标 {target}")

            try:
                with parent.child(timeout) as deadline:
                    facts = prober.probe(deadline, host, port, at=now)
            except ProbeError as e:
                error_handler.handle_probe_error(host, port, e)
                result = ScanResult.from_error(target, e)
            except Exception as e:
                logger.exception(f"探测 {target} 时发生未预期的错误")
                result = ScanResult.from_error(target, e)
            else:
                result = ScanResult.from_facts(target, facts, days_until_expiry(facts.not_after, now))

            sink.put_nowait(result)
            emitted += 1

    return emitted
