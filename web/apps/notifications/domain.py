"""DTOs and port for notification dispatch."""

from dataclasses import asdict, dataclass
from typing import Protocol


@dataclass(frozen=True)
class LowStockProduct:
    id: str
    name: str
    description: str
    stock: int
    price: str

    def as_payload(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Recipient:
    email: str
    full_name: str = ""


class NotifierPort(Protocol):
    """Where low-stock alerts go. Callers treat every method as fire-and-forget."""

    def send_low_stock_alert(self, recipient: Recipient, product: LowStockProduct) -> None:
        raise NotImplementedError()

    def send_massive_low_stock_alert(self, recipients: list[Recipient], product: LowStockProduct) -> None:
        raise NotImplementedError()
