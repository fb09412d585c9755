from managed_exceptions.error_details import ErrorDetails

class ManagedException(Exception):
    def __init__(self, error: ErrorDetails):
        self.status_code = error.status_code
        self.diagnostic_code = error.diagnostic_code
        self.diagnostic_details = error.diagnostic_details
        super().__init__(error.message)

    @property
    def message(self) -> str:
        return str(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.diagnostic_code}: {self.message})"
