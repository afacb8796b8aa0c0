"""Domain-level failures raised before any request is made."""


class ServiceError(Exception):
    """Base class for service-layer refusals."""


class EntityNotFound(ServiceError):
    def __init__(self, collection: str, entity_id: str):
        super().__init__(f"{collection} entity not found: {entity_id}")
        self.collection = collection
        self.entity_id = entity_id


class InsufficientPoints(ServiceError):
    def __init__(self, balance: int, cost: int):
        super().__init__("You need more points to redeem this reward!")
        self.balance = balance
        self.cost = cost


class NoHousehold(ServiceError):
    """The session has no household to scope the call to."""
