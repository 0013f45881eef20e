"""
扫描结果输出服务
"""
import csv
import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models import EXPIRY_SENTINEL, ScanResult

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Domain", "Port",
    "TLS Version", "Cipher Suite", "Compliant",
    "Chain Status", "Issuer", "Sig Algo", "SANs",
    "Serial", "Common Name", "Not Before", "Not After", "Days until Expire", "Error",
]


def _csv_row(result: ScanResult) -> List[str]:
    return [
        result.domain,
        str(result.port),
        result.tls_version,
        result.cipher_suite,
        "Yes" if result.compliant else "No",
        result.chain_status,
        result.issuer,
        result.signature_algorithm,
        ";".join(result.sans),
        result.serial,
        result.common_name,
        result.not_before.isoformat() if result.not_before else "",
        result.not_after.isoformat() if result.not_after else "",
        str(result.days_until_expiry),
        result.error or "",
    ]


def write_results(output_file: str, results: List[ScanResult],
                  now: Optional[datetime] = None) -> Dict[str, str]:
    """
    写出JSON与CSV结果文件

    文件写在 <目录>/<YYYYMMDD>/ 下，另外生成一个只包含成功结果的CSV。

    Args:
        output_file: 输出路径前缀，如 /tmp/data
        results: 扫描结果
        now: 日期目录使用的时间

    Returns:
        Dict[str, str]: 各输出文件路径
    """
    now = now or datetime.now(timezone.utc)
    ordered = sorted(results, key=lambda result: (result.domain, result.port))

    dir_path = os.path.join(os.path.dirname(output_file) or '.', now.strftime('%Y%m%d'))
    os.makedirs(dir_path, exist_ok=True)

    prefix = os.path.join(dir_path, os.path.basename(output_file))
    paths = {
        'json': f"{prefix}.json",
        'csv': f"{prefix}.csv",
        'success_csv': f"{prefix}_success_only.csv",
    }

    with open(paths['json'], 'w', encoding='utf-8') as f:
        json.dump([result.to_dict() for result in ordered], f, indent=2, ensure_ascii=False)

    with open(paths['csv'], 'w', newline='', encoding='utf-8') as all_file, \
            open(paths['success_csv'], 'w', newline='', encoding='utf-8') as success_file:
        writer = csv.writer(all_file)
        success_writer = csv.writer(success_file)
        writer.writerow(CSV_HEADER)
        success_writer.writerow(CSV_HEADER)

        for result in ordered:
            row = _csv_row(result)
            writer.writerow(row)
            if result.days_until_expiry != EXPIRY_SENTINEL:
                success_writer.writerow(row)

    logger.info(f"扫描结果已写入 {dir_path}")
    return paths
