import asyncio

from ranobe.router.errors import OperationCancelledError


class CancellationToken:
    """
    Token de cancelación explícito, compartido por todas las llamadas de un
    documento. Cancelarlo interrumpe las llamadas en curso: sus segmentos
    vuelven a PENDING y liberan su hueco de concurrencia.
    """

    def __init__(self):
        self._event  = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelado por el usuario") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(self._reason)
