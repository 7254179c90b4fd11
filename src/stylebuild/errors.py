"""Exception types raised by stylebuild."""


class StyleBuildError(Exception):
    """Base class for all stylebuild errors."""


class ConfigError(StyleBuildError):
    """Invalid or unreadable build configuration."""


class ResolutionError(StyleBuildError):
    """Bad source root or glob pattern. Fatal: aborts the build before compiling."""


class CompileError(StyleBuildError):
    """A single compilation unit failed.

    Non-fatal: the pipeline collects these and keeps compiling the other units.

    Attributes:
        unit_id: Identity of the unit that failed
        cause: Underlying exception or message
    """

    def __init__(self, unit_id: str, cause: Exception | str):
        self.unit_id = unit_id
        self.cause = cause
        super().__init__(f"{unit_id}: {cause}")


class CycleError(StyleBuildError):
    """An import cycle reachable from a unit.

    Reported as a warning; compilation proceeds with the closure gathered so far.

    Attributes:
        unit_id: Identity whose closure walk found the cycle
        cycle: Identities forming the cycle, first element repeated at the end
    """

    def __init__(self, unit_id: str, cycle: tuple[str, ...]):
        self.unit_id = unit_id
        self.cycle = cycle
        super().__init__(f"{unit_id}: import cycle {' -> '.join(cycle)}")
