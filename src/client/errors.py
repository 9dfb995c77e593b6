class ServiceError(Exception):
    pass


class NetworkFailureError(ServiceError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Network failure calling {url}: {reason}")
        self.url = url
        self.reason = reason


class NetworkTimeoutError(NetworkFailureError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(url, f"timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class ApiError(ServiceError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404
