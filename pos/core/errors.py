class RecordNotFoundError(LookupError):
    def __init__(self, entity: str, record_id):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


class InsufficientStockError(ValueError):
    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for {product_name}: "
            f"{available} available, {requested} requested"
        )


__all__ = ["InsufficientStockError", "RecordNotFoundError"]
