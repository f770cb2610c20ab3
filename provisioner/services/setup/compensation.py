"""补偿动作记录

编排流程每拿到一个需要归还的资源，就登记一个无参的撤销动作。
成功时清空；失败时逐个执行。

执行顺序默认与登记顺序相同（forward），
配置 compensation_order=reverse 时后进先出。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from provisioner.core.exceptions import CompensationError

logger = logging.getLogger(__name__)


@dataclass
class Compensation:
    """单个撤销动作"""

    label: str
    action: Callable[[], object]


class CompensationLog:
    """有序的撤销动作列表，仅归属于一次编排"""

    def __init__(self, order: str = "forward") -> None:
        if order not in ("forward", "reverse"):
            raise ValueError(f"未知的补偿顺序: {order}")
        self.order = order
        self._entries: list[Compensation] = []

    def push(self, label: str, action: Callable[[], object]) -> None:
        self._entries.append(Compensation(label=label, action=action))
        logger.debug("登记补偿动作: %s", label)

    @property
    def labels(self) -> list[str]:
        return [c.label for c in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def _ordered(self) -> list[Compensation]:
        if self.order == "reverse":
            return list(reversed(self._entries))
        return list(self._entries)

    def run(self, cause: BaseException | None = None) -> list[str]:
        """执行全部撤销动作，返回已执行的标签

        任一动作失败即停止，抛 CompensationError（original 为触发回滚的原始错误）。
        """
        ordered = self._ordered()
        done: list[str] = []
        for i, comp in enumerate(ordered):
            try:
                comp.action()
            except Exception as e:
                remaining = [c.label for c in ordered[i + 1:]]
                logger.error(
                    "补偿动作失败: %s (%s)，未执行: %s",
                    comp.label, e, remaining or "-",
                )
                raise CompensationError(
                    f"回滚未完成，{comp.label} 失败: {e}",
                    original=cause, failed=comp.label, remaining=remaining,
                ) from e
            done.append(comp.label)
            logger.info("补偿动作完成: %s", comp.label)
        self._entries.clear()
        return done
