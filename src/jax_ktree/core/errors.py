"""Exceptions raised by the kinematic tree."""


class JointError(ValueError):
    """Base class for failures while setting joint positions."""


class OutOfLimitError(JointError):
    def __init__(self, joint_name: str, position: float, limits):
        self.joint_name = joint_name
        self.position = position
        self.limits = limits
        super().__init__(
            f"Joint '{joint_name}': position {position} is out of limit "
            f"[{limits.min}, {limits.max}]"
        )


class JointTypeError(JointError):
    def __init__(self, joint_name: str, message: str):
        self.joint_name = joint_name
        super().__init__(f"Joint '{joint_name}': {message}")


class MimicError(JointError):
    """A mimic child was reached without a mimic law attached."""

    def __init__(self, from_name: str, to_name: str, message: str):
        self.from_name = from_name
        self.to_name = to_name
        super().__init__(message)


class SizeMismatchError(JointError):
    def __init__(self, input_size: int, required_size: int):
        self.input_size = input_size
        self.required_size = required_size
        super().__init__(
            f"Expected {required_size} joint positions, got {input_size}"
        )


class TransformNotReadyError(RuntimeError):
    """Parent world transform was read before the update pass reached it."""


class BorrowError(RuntimeError):
    """A node record was accessed while an exclusive section on it was open."""
