# scenediff/errors.py


class SceneDiffError(Exception):
    """Base class for errors raised by scenediff."""


class InvalidPathError(SceneDiffError, ValueError):
    pass


class InvalidConfig(SceneDiffError):
    pass


class ProtocolError(SceneDiffError):
    """The caller broke the notify / get_diff / clear_diff contract."""


class UnknownEntityError(SceneDiffError, KeyError):
    def __init__(self, path, kind=None):
        super().__init__(path)
        self.path = path
        self.kind = kind

    def __str__(self):
        if self.kind:
            return f"{self.path} is not a known {self.kind} entity"
        return f"{self.path} is not a known entity"


class NoActiveRenderSettingsError(SceneDiffError):
    pass


class StageOpenError(SceneDiffError):
    def __init__(self, stage_path):
        super().__init__(f"Failed to open USD stage: {stage_path}")
        self.stage_path = stage_path
