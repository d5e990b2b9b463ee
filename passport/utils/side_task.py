"""
File: passport/utils/side_task.py
Description: 尽力而为的旁路任务执行器 (Fire-and-Forget)

用于注册后生成默认头像等非关键流程：
1. 任务失败只记录日志并计入 Prometheus 指标，绝不影响主流程的返回结果
2. 由 FastAPI BackgroundTasks 在响应发送后调度执行

Author: jinmozhe
Created: 2026-03-02
Updated: 2026-03-02 (prometheus counter)
"""

from collections.abc import Awaitable, Callable
from typing import Any

from passport.core.logging import logger
from passport.core.metrics import record_side_task_failure


async def run_side_task(name: str, func: Callable[[], Awaitable[Any]]) -> None:
    """
    执行旁路任务。

    Args:
        name: 任务名 (用于日志与指标标签)
        func: 无参协程工厂，通常为 functools.partial 包装的协程函数
    """
    try:
        await func()
    except Exception:
        record_side_task_failure(name)
        logger.bind(task=name).exception("Side task failed")
    else:
        logger.bind(task=name).debug("Side task finished")
