# chatedit/core/confirm.py
"""
确认接口。只有服务层（Applier / review 流程）使用，chatpatch 引擎本身
不关心确认策略: 调用方决定自动提交还是询问用户。
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..utils import console


class Confirmer(ABC):

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        pass

    @abstractmethod
    def choose_one(self, message: str, options: Sequence[str]) -> Optional[str]:
        """返回所选项；None 表示取消"""
        pass


class ConsoleConfirmer(Confirmer):
    def confirm(self, message: str, default: bool = False) -> bool:
        return console.confirm(message, default=default)

    def choose_one(self, message: str, options: Sequence[str]) -> Optional[str]:
        return console.choose(message, list(options))


class AutoConfirmer(Confirmer):
    """--yes: 所有确认都通过，选择题取第一个选项"""

    def confirm(self, message: str, default: bool = False) -> bool:
        return True

    def choose_one(self, message: str, options: Sequence[str]) -> Optional[str]:
        return options[0] if options else None
