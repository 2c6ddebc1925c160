class ReporterError(RuntimeError):
    pass


class PermissionDenied(ReporterError):
    def __init__(self, channel: str, message: str | None = None):
        super().__init__(message or f"{channel} permission denied")
        self.channel = channel


class DeviceUnavailable(ReporterError):
    pass


class CameraUnavailable(DeviceUnavailable):
    pass


class LocationUnavailable(DeviceUnavailable):
    pass


class PositionTimeout(ReporterError):
    pass


class UnsupportedMedia(ReporterError):
    pass


class MetadataEmbedFailure(ReporterError):
    pass


class NetworkFailure(ReporterError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
