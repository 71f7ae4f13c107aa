import enum

class ErrorVolume(enum.Enum):
    """
    How loudly to complain about something
    """
    ERROR = 'error'
    WARNING = 'warning'
    SILENT = 'silent'

    @classmethod
    def default(cls):
        return cls.WARNING


class UnderscoreHandling(enum.Enum):
    """
    Whether mangled symbols in the input still have their leading
    underscore. Some tools (e.g. lldb on macOS) strip it.
    """
    NORMAL = 'normal'
    MISSING = 'missing'

    @classmethod
    def default(cls):
        return cls.NORMAL
