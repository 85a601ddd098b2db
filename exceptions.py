class HostelError(Exception):
    """Base class for errors raised by the hostel domain layer."""


class ValidationError(HostelError):
    """Form data failed validation. `errors` maps field name -> message."""

    def __init__(self, errors):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class NotFoundError(HostelError):
    def __init__(self, entity, record_id):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} '{record_id}' not found")


class CapacityError(HostelError):
    """Allocation would break the room occupancy/capacity rules."""


class InvalidTransitionError(HostelError):
    def __init__(self, entity, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'")


class DuplicateVoteError(HostelError):
    pass


class ConcurrentUpdateError(HostelError):
    """The stored collection changed between read and write."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"collection '{key}' was modified concurrently")
