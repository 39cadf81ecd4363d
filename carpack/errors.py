class CarError(Exception):
    """Base class for carpack errors."""


# Encoding
class MalformedIndexError(CarError):
    pass


class StructuralError(CarError):
    pass


# Reading/verification
class CarFormatError(CarError):
    pass


class IntegrityError(CarError):
    pass
