"""
File: passport/core/metrics.py
Description: Prometheus 指标定义与导出

独立 CollectorRegistry，避免与进程默认注册表冲突，也便于测试读取。

Author: jinmozhe
Created: 2026-03-02
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest

registry = CollectorRegistry()

SIDE_TASK_FAILURES = Counter(
    "side_task_failures_total",
    "旁路任务失败计数",
    ["task"],
    registry=registry,
)


def record_side_task_failure(task: str) -> None:
    SIDE_TASK_FAILURES.labels(task=task).inc()


def metrics_content() -> bytes:
    """导出 Prometheus 文本格式指标"""
    return generate_latest(registry)
