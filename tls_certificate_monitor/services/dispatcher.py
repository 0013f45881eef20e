"""
扫描调度服务
"""
import logging
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence

from ..models import ScanResult
from .batch_worker import process_batch
from .deadline import Deadline
from .error_handler import ProbeErrorHandler
from .tls_probe import TLSProbe

logger = logging.getLogger(__name__)


def partition(domains: Sequence[str], batch_size: int) -> Iterator[Sequence[str]]:
    """
    将域名列表切分为连续的批次，最后一批可能较小

    batch_size必须为正数，由调用方保证。
    """
    for start in range(0, len(domains), batch_size):
        yield domains[start:start + batch_size]


class ScanDispatcher:
    """扫描调度器：每个批次一个并发工作线程，结果汇总到共享队列"""

    def __init__(self, prober: Optional[TLSProbe] = None,
                 error_handler: Optional[ProbeErrorHandler] = None):
        """
        初始化调度器

        Args:
            prober: TLS探测器，默认使用certifi根证书
            error_handler: 探测错误处理器
        """
        self.prober = prober or TLSProbe()
        self.error_handler = error_handler or ProbeErrorHandler()

    def scan(self, domains: Sequence[str], ports: Sequence[int], timeout: float, batch_size: int,
             now: Optional[datetime] = None, parent: Optional[Deadline] = None) -> List[ScanResult]:
        """
        扫描全部 (域名, 端口) 组合

        单个目标失败或超时不会取消其他目标；parent用于整体扫描的取消。

        Args:
            domains: 域名列表
            ports: 端口列表
            timeout: 单次探测超时时间（秒）
            batch_size: 每个工作线程处理的域名数量
            now: 计算过期天数的参考时间，默认为当前时间
            parent: 整体扫描的截止时间令牌

        Returns:
            List[ScanResult]: 每个 (域名, 端口) 一条结果，顺序不确定
        """
        now = now or datetime.now(timezone.utc)
        parent = parent or Deadline()
        total_work = len(domains) * len(ports)
        batches = list(partition(domains, batch_size))

        if not batches or not ports:
            return []

        # 队列容量等于结果总数，生产者不会阻塞
        sink: "queue.Queue[ScanResult]" = queue.Queue(maxsize=total_work)
        started = time.monotonic()

        logger.info(f"开始扫描 {len(domains)} 个域名 x {len(ports)} 个端口，共 {len(batches)} 个批次")

        with ThreadPoolExecutor(max_workers=len(batches), thread_name_prefix="tls-batch") as executor:
            futures = [
                executor.submit(process_batch, parent, batch, ports, timeout, now, sink,
                                self.prober, self.error_handler)
                for batch in batches
            ]
            for future in futures:
                future.result()

        results = []
        while not sink.empty():
            results.append(sink.get_nowait())

        logger.info(f"扫描完成，耗时 {time.monotonic() - started:.2f} 秒，共 {len(results)} 条结果")
        return results


def scan(domains: Sequence[str], ports: Sequence[int], timeout: float, batch_size: int,
         now: Optional[datetime] = None, parent: Optional[Deadline] = None,
         prober: Optional[TLSProbe] = None) -> List[ScanResult]:
    """使用默认调度器扫描"""
    return ScanDispatcher(prober=prober).scan(domains, ports, timeout, batch_size, now=now, parent=parent)
