from abc import ABC, abstractmethod
from typing import Any, Dict


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 30

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass

    async def aclose(self) -> None:
        """Release pooled connections"""
        pass
